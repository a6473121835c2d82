from __future__ import annotations

from dataclasses import replace
from typing import AsyncIterator

import pytest
from httpx import ASGITransport, AsyncClient

from dentalcare.api_main import create_app
from dentalcare.config import load_settings

from .conftest import SENHA

pytestmark = pytest.mark.anyio


@pytest.fixture
def app(db):
    settings = replace(
        load_settings(),
        jwt_secret="segredo-de-teste",
        debug=True,
        link_pagamento_url=None,
        fuso_horario="America/Sao_Paulo",
    )
    return create_app(settings=settings, database=db)


@pytest.fixture
async def client(app) -> AsyncIterator[AsyncClient]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


async def _login(client: AsyncClient, email: str, senha: str = SENHA):
    return await client.post("/api/auth/login", data={"username": email, "password": senha})


async def _master(client: AsyncClient, email: str = "dono@sorriso.test") -> dict[str, str]:
    r = await client.post(
        "/api/auth/cadastro",
        json={"nome_clinica": "Sorriso", "nome": "Dono", "email": email, "password": SENHA, "confirmacao": SENHA},
    )
    assert r.status_code == 200
    r = await client.post("/api/auth/confirmar", json={"token": r.json()["token_confirmacao"]})
    assert r.status_code == 200
    r = await _login(client, email)
    return {"Authorization": f"Bearer {r.json()['access_token']}"}


async def test_cadastro_confirmacao_e_login(client):
    r = await client.post(
        "/api/auth/cadastro",
        json={"nome_clinica": "Sorriso", "nome": "Dono", "email": "dono@sorriso.test", "password": "Abcdef1!", "confirmacao": "Abcdef1!"},
    )
    assert r.status_code == 200
    corpo = r.json()
    assert corpo["status"] == "pendente"
    assert corpo["token_confirmacao"]

    r = await _login(client, "dono@sorriso.test")
    assert r.status_code == 401
    assert r.json()["detail"] == "E-mail não confirmado"

    await client.post("/api/auth/confirmar", json={"token": corpo["token_confirmacao"]})

    r = await _login(client, "dono@sorriso.test", "Errada1!")
    assert r.status_code == 401
    assert r.json()["detail"] == "E-mail ou senha inválidos"

    r = await _login(client, "dono@sorriso.test")
    assert r.status_code == 200
    token = r.json()["access_token"]

    r = await client.get("/api/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200
    me = r.json()
    assert me["tipo"] == "master"
    assert len(me["menu"]) == 11
    assert all(me["permissoes"].values())


async def test_cadastro_senha_fraca(client):
    r = await client.post(
        "/api/auth/cadastro",
        json={"nome_clinica": "X", "nome": "Y", "email": "y@x.test", "password": "abc12345", "confirmacao": "abc12345"},
    )
    assert r.status_code == 400
    assert "password" in r.json()["campos"]


async def test_sem_token_e_token_invalido(client):
    assert (await client.get("/api/me")).status_code == 401
    r = await client.get("/api/me", headers={"Authorization": "Bearer nao-e-um-jwt"})
    assert r.status_code == 401
    assert r.json()["detail"] == "Token inválido"


async def test_forca_senha(client):
    r = await client.post("/api/auth/forca-senha", json={"password": "Abc123!!"})
    assert r.json()["valida"] is True
    r = await client.post("/api/auth/forca-senha", json={"password": "abc12345"})
    assert r.json() == {"min_length": True, "has_uppercase": False, "has_number": True, "has_special_char": False, "valida": False}


async def test_redefinicao_de_senha_em_debug(client):
    await _master(client)
    r = await client.post("/api/auth/esqueci-senha", json={"email": "dono@sorriso.test"})
    token = r.json()["token_redefinicao"]
    r = await client.post(
        "/api/auth/redefinir-senha", json={"token": token, "password": "Nova@Senha1", "confirmacao": "Nova@Senha1"}
    )
    assert r.status_code == 200
    assert (await _login(client, "dono@sorriso.test", "Nova@Senha1")).status_code == 200


async def test_paciente_crud(client):
    auth = await _master(client)
    r = await client.post("/api/pacientes", json={"nome": "Maria"}, headers=auth)
    assert r.status_code == 400
    assert r.json()["campos"] == {"data_nascimento": "Obrigatório"}

    r = await client.post(
        "/api/pacientes",
        json={"nome": "Maria Silva", "data_nascimento": "1990-04-02", "cpf": "123.456.789-09"},
        headers=auth,
    )
    assert r.status_code == 200
    paciente_id = r.json()["id"]

    lista = (await client.get("/api/pacientes", params={"busca": "maria"}, headers=auth)).json()
    assert [p["id"] for p in lista] == [paciente_id]

    r = await client.put(
        f"/api/pacientes/{paciente_id}", json={"nome": "Maria S.", "data_nascimento": "1990-04-02"}, headers=auth
    )
    assert r.json()["nome"] == "Maria S."

    assert (await client.delete(f"/api/pacientes/{paciente_id}", headers=auth)).status_code == 200
    assert (await client.get(f"/api/pacientes/{paciente_id}", headers=auth)).status_code == 404


async def test_convite_limita_capacidades(client):
    auth = await _master(client)
    r = await client.post(
        "/api/usuarios/convites",
        json={"nome": "Recepção", "email": "recepcao@sorriso.test", "tipo": "usuario", "permissoes": {"agenda": True, "criar_usuarios": True}},
        headers=auth,
    )
    assert r.status_code == 200
    convite = r.json()
    assert convite["permissoes"]["agenda"] is True
    assert convite["permissoes"]["criar_usuarios"] is False

    r = await client.post(
        "/api/auth/aceitar-convite", json={"token": convite["token_convite"], "password": SENHA, "confirmacao": SENHA}
    )
    assert r.status_code == 200

    token = (await _login(client, "recepcao@sorriso.test")).json()["access_token"]
    recepcao = {"Authorization": f"Bearer {token}"}
    me = (await client.get("/api/me", headers=recepcao)).json()
    assert me["menu"] == ["dashboard", "agenda"]

    r = await client.get("/api/pacientes", headers=recepcao)
    assert r.status_code == 403
    assert (await client.get("/api/usuarios", headers=recepcao)).status_code == 403

    usuarios = (await client.get("/api/usuarios", headers=auth)).json()
    assert {u["email"] for u in usuarios} == {"dono@sorriso.test", "recepcao@sorriso.test"}


async def test_usuario_desativado_perde_acesso(client):
    auth = await _master(client)
    convite = (
        await client.post(
            "/api/usuarios/convites", json={"nome": "Aux", "email": "aux@sorriso.test"}, headers=auth
        )
    ).json()
    await client.post(
        "/api/auth/aceitar-convite", json={"token": convite["token_convite"], "password": SENHA, "confirmacao": SENHA}
    )
    token = (await _login(client, "aux@sorriso.test")).json()["access_token"]

    r = await client.put(f"/api/usuarios/{convite['usuario_id']}/status", json={"status": "inativo"}, headers=auth)
    assert r.json()["status"] == "inativo"
    r = await client.get("/api/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401


async def test_estoque_em_falta(client):
    auth = await _master(client)
    await client.post(
        "/api/estoque/produtos", json={"nome": "Luvas", "quantidade_atual": 2, "quantidade_minima": 5}, headers=auth
    )
    await client.post(
        "/api/estoque/produtos", json={"nome": "Sugador", "quantidade_atual": 20, "quantidade_minima": 5}, headers=auth
    )
    r = await client.get("/api/estoque/produtos", params={"em_falta": "true"}, headers=auth)
    assert [p["nome"] for p in r.json()] == ["Luvas"]


async def test_agenda(client):
    auth = await _master(client)
    pac = (await client.post("/api/pacientes", json={"nome": "Maria", "data_nascimento": "1990-01-01"}, headers=auth)).json()
    prof = (await client.post("/api/profissionais", json={"nome": "Dra. Ana"}, headers=auth)).json()
    evento = {
        "titulo": "Consulta",
        "paciente_id": pac["id"],
        "profissional_id": prof["id"],
        "data_inicio": "2026-03-10T14:03:00",
        "data_fim": "2026-03-10T15:00:00",
    }

    r = await client.post("/api/agenda/eventos", json=evento, headers=auth)
    assert r.status_code == 200
    assert r.json()["conflitos"] == []
    primeiro_id = r.json()["evento"]["id"]

    r = await client.post("/api/agenda/eventos", json={**evento, "titulo": "Retorno"}, headers=auth)
    assert r.json()["conflitos"] == [primeiro_id]

    r = await client.post("/api/agenda/eventos", json={**evento, "data_fim": "2026-03-10T14:00:00"}, headers=auth)
    assert r.status_code == 400
    assert "data_fim" in r.json()["campos"]

    r = await client.get(
        "/api/agenda/eventos", params={"busca": "RETORNO", "data_inicio": "2026-03-10", "data_fim": "2026-03-10"}, headers=auth
    )
    corpo = r.json()
    assert [e["titulo"] for e in corpo["eventos"]] == ["Retorno"]
    assert corpo["total"] == 2
    assert corpo["filtros_ativos"] == 3

    slots = (await client.get("/api/agenda/dia", params={"dia": "2026-03-10"}, headers=auth)).json()
    por_hora = {s["horario"]: s for s in slots}
    assert len(por_hora["14:00"]["eventos"]) == 2
    assert por_hora["14:00"]["colunas"] == 2
    assert por_hora["09:00"]["livre"] is True
    assert por_hora["09:00"]["novo_evento_inicio"] == "2026-03-10T09:00:00"
    assert por_hora["09:00"]["novo_evento_fim"] == "2026-03-10T10:00:00"


async def test_link_de_pagamento_sem_gateway(client):
    auth = await _master(client)
    r = await client.post("/api/pagamentos/link", json={"valor_total": 100, "metodo": "pix"}, headers=auth)
    assert r.status_code == 502
    (pagamento,) = (await client.get("/api/pagamentos", headers=auth)).json()
    assert pagamento["status"] == "falhou"


async def test_cards_e_configuracoes(client):
    auth = await _master(client)
    r = await client.put("/api/dashboard/cards", json={"cards": ["agenda", "receita"]}, headers=auth)
    assert r.json()["cards"] == ["agenda", "receita"]

    cards = (await client.get("/api/dashboard/cards", headers=auth)).json()
    assert [c["id"] for c in cards if c["enabled"]] == ["agenda", "receita"]

    r = await client.put("/api/configuracoes/agenda", json={"intervalo": 30}, headers=auth)
    assert r.status_code == 200
    todas = (await client.get("/api/configuracoes", headers=auth)).json()
    assert todas["agenda"] == {"intervalo": 30}
    assert todas["interface"]["dashboard_cards"] == ["agenda", "receita"]

    r = await client.put("/api/configuracoes/marketing", json={}, headers=auth)
    assert r.status_code == 400


async def test_luzia_convenios_e_busca(client):
    auth = await _master(client)
    r = await client.put("/api/luzia/configuracao", json={"ativo": True, "api_key_whatsapp": "abcdefgh9876"}, headers=auth)
    assert r.json()["api_key_whatsapp"] == "****9876"
    assert (await client.get("/api/luzia/logs", headers=auth)).json() == []
    preview = (await client.get("/api/luzia/preview", headers=auth)).json()
    assert set(preview) == {"mensagem_confirmacao", "mensagem_reagendamento", "mensagem_cancelamento"}
    assert "Sorriso" in preview["mensagem_confirmacao"]
    assert "{clinica}" not in preview["mensagem_confirmacao"]

    convenios = (await client.get("/api/convenios", headers=auth)).json()
    assert "Amil Dental" in [c["nome"] for c in convenios]
    planos = (await client.get("/api/convenios/amil/planos", headers=auth)).json()
    assert {p["convenio_id"] for p in planos} == {"amil"}

    await client.post("/api/profissionais", json={"nome": "Dra. Ana"}, headers=auth)
    r = await client.get("/api/busca", params={"q": "an"}, headers=auth)
    assert [x["nome"] for x in r.json()] == ["Dra. Ana"]


async def test_cep_pelo_cliente_http_da_app(app, client):
    class Resposta:
        status_code = 200
        ok = True

        def json(self):
            return {"street": "Av. Paulista", "neighborhood": "Bela Vista", "city": "São Paulo", "state": "SP"}

    class Sessao:
        def get(self, url, timeout=None):
            return Resposta()

    app.state.http = Sessao()
    auth = await _master(client)
    r = await client.get("/api/cep/01310-100", headers=auth)
    assert r.json()["cidade"] == "São Paulo"
