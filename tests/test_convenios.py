from dentalcare.convenios import CONVENIOS_ESTATICOS, PLANOS_ESTATICOS, CatalogoConvenios, seed_convenios
from dentalcare.models import Convenio


def test_tabela_vazia_usa_catalogo_estatico(db):
    catalogo = CatalogoConvenios(db)
    convenios = catalogo.listar_convenios()
    assert len(convenios) == len(CONVENIOS_ESTATICOS)
    assert [c["nome"] for c in convenios] == sorted(c["nome"] for c in CONVENIOS_ESTATICOS)
    assert [p["nome"] for p in catalogo.listar_planos("amil")] == ["Essencial", "Plus", "Premium"]
    assert catalogo.listar_planos("") == []


def test_seed_idempotente(db):
    assert seed_convenios(db) == len(CONVENIOS_ESTATICOS) + len(PLANOS_ESTATICOS)
    assert seed_convenios(db) == 0


def test_resultado_em_cache_ate_limpar(db):
    seed_convenios(db)
    catalogo = CatalogoConvenios(db)
    antes = catalogo.listar_convenios()

    with db.session() as s:
        s.add(Convenio(id="nova", nome="Nova Odonto"))

    assert catalogo.listar_convenios() == antes
    catalogo.limpar_cache()
    assert "Nova Odonto" in [c["nome"] for c in catalogo.listar_convenios()]
