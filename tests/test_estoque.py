import pytest

from dentalcare import estoque
from dentalcare.errors import ErroValidacao

from .conftest import criar_clinica


def test_produto_em_falta_derivado(db, clinica_id):
    baixo = estoque.criar_produto(db, clinica_id, {"nome": "Luvas", "quantidade_atual": 2, "quantidade_minima": 5})
    no_limite = estoque.criar_produto(db, clinica_id, {"nome": "Máscaras", "quantidade_atual": "5", "quantidade_minima": "5"})
    ok = estoque.criar_produto(db, clinica_id, {"nome": "Sugador", "quantidade_atual": 20, "quantidade_minima": 5})

    assert baixo["em_falta"] and no_limite["em_falta"] and not ok["em_falta"]
    assert [p["nome"] for p in estoque.produtos_em_falta(db, clinica_id)] == ["Luvas", "Máscaras"]


def test_produto_sem_categoria_e_fornecedor(db, clinica_id):
    p = estoque.criar_produto(db, clinica_id, {"nome": "Algodão", "quantidade_atual": "abc"})
    assert p["quantidade_atual"] == 0.0
    assert p["categoria_nome"] == estoque.SEM_CATEGORIA
    assert p["fornecedor_nome"] == estoque.SEM_FORNECEDOR
    assert p["unidade_medida"] == "unidade"


def test_busca_por_nome_codigo_e_categoria(db, clinica_id):
    cat = estoque.salvar_categoria(db, clinica_id, "Descartáveis")
    forn = estoque.salvar_fornecedor(db, clinica_id, {"nome": "Dental Supply", "email": "VENDAS@supply.test"})
    assert forn["email"] == "vendas@supply.test"

    estoque.criar_produto(
        db, clinica_id, {"nome": "Luvas", "categoria_id": cat["id"], "fornecedor_id": forn["id"]}
    )
    estoque.criar_produto(db, clinica_id, {"nome": "Resina", "codigo_barras": "789000111"})

    assert [p["nome"] for p in estoque.listar_produtos(db, clinica_id, "luv")] == ["Luvas"]
    assert [p["nome"] for p in estoque.listar_produtos(db, clinica_id, "789000")] == ["Resina"]
    achados = estoque.listar_produtos(db, clinica_id, "descart")
    assert [p["nome"] for p in achados] == ["Luvas"]
    assert achados[0]["categoria_nome"] == "Descartáveis"
    assert achados[0]["fornecedor_nome"] == "Dental Supply"


def test_categoria_repetida(db, clinica_id):
    estoque.salvar_categoria(db, clinica_id, "Anestésicos")
    with pytest.raises(ErroValidacao, match="Categoria já existe"):
        estoque.salvar_categoria(db, clinica_id, "Anestésicos")


def test_remover_categoria_desvincula_produtos(db, clinica_id):
    cat = estoque.salvar_categoria(db, clinica_id, "Descartáveis")
    p = estoque.criar_produto(db, clinica_id, {"nome": "Luvas", "categoria_id": cat["id"]})
    estoque.remover_categoria(db, clinica_id, cat["id"])

    (atual,) = estoque.listar_produtos(db, clinica_id)
    assert atual["id"] == p["id"]
    assert atual["categoria_nome"] == estoque.SEM_CATEGORIA
    assert estoque.listar_categorias(db, clinica_id) == []


def test_referencia_de_outra_clinica(db, clinica_id):
    outra = criar_clinica(db, "Outra")
    cat = estoque.salvar_categoria(db, outra, "Dela")
    with pytest.raises(ErroValidacao) as exc:
        estoque.criar_produto(db, clinica_id, {"nome": "Luvas", "categoria_id": cat["id"]})
    assert "categoria_id" in exc.value.campos
