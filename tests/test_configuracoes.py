import pytest

from dentalcare import configuracoes
from dentalcare.errors import ErroValidacao


def test_categoria_desconhecida(db, clinica_id):
    with pytest.raises(ErroValidacao):
        configuracoes.salvar(db, clinica_id, "marketing", {})
    with pytest.raises(ErroValidacao):
        configuracoes.obter(db, clinica_id, "marketing")


def test_upsert_substitui_o_blob(db, clinica_id):
    assert configuracoes.obter(db, clinica_id, "agenda") is None
    configuracoes.salvar(db, clinica_id, "agenda", {"intervalo": 30, "inicio": "08:00"})
    configuracoes.salvar(db, clinica_id, "agenda", {"intervalo": 15})
    assert configuracoes.obter(db, clinica_id, "agenda") == {"intervalo": 15}
    assert configuracoes.obter_todas(db, clinica_id) == {"agenda": {"intervalo": 15}}


def test_cards_padrao_todos_habilitados(db, clinica_id):
    cards = configuracoes.cards_dashboard(db, clinica_id)
    assert [c["id"] for c in cards] == configuracoes.IDS_CARDS
    assert all(c["enabled"] for c in cards)
    assert cards[0]["title"] == "Pacientes"


def test_salvar_cards_mescla_interface(db, clinica_id):
    configuracoes.salvar(db, clinica_id, "interface", {"tema": "escuro"})
    ordem = configuracoes.salvar_cards(db, clinica_id, ["receita", "pacientes", "receita"])
    assert ordem == ["receita", "pacientes"]

    interface = configuracoes.obter(db, clinica_id, "interface")
    assert interface == {"tema": "escuro", "dashboard_cards": ["receita", "pacientes"]}

    cards = configuracoes.cards_dashboard(db, clinica_id)
    assert [c["id"] for c in cards[:2]] == ["receita", "pacientes"]
    assert [c["enabled"] for c in cards] == [True, True, False, False, False, False]


def test_salvar_cards_rejeita_id_desconhecido(db, clinica_id):
    with pytest.raises(ErroValidacao):
        configuracoes.salvar_cards(db, clinica_id, ["pacientes", "clima"])
    assert configuracoes.obter(db, clinica_id, "interface") is None
