import requests

from dentalcare.cep import buscar_cep


class FakeResponse:
    def __init__(self, status_code, corpo):
        self.status_code = status_code
        self._corpo = corpo

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        return self._corpo


class FakeSession:
    """Responde por trecho da URL; o que não estiver mapeado levanta erro de rede."""

    def __init__(self, respostas):
        self.respostas = respostas
        self.urls = []

    def get(self, url, timeout=None):
        self.urls.append(url)
        for trecho, resposta in self.respostas.items():
            if trecho in url:
                return resposta
        raise requests.ConnectionError(url)


def test_primeiro_provedor_responde():
    sessao = FakeSession(
        {
            "brasilapi": FakeResponse(
                200, {"street": "Av. Paulista", "neighborhood": "Bela Vista", "city": "São Paulo", "state": "SP"}
            )
        }
    )
    assert buscar_cep("01310-100", session=sessao) == {
        "cep": "01310100",
        "logradouro": "Av. Paulista",
        "bairro": "Bela Vista",
        "cidade": "São Paulo",
        "uf": "SP",
    }
    assert len(sessao.urls) == 1


def test_cai_para_o_proximo_provedor():
    sessao = FakeSession(
        {
            "brasilapi": FakeResponse(404, {}),
            "apicep": FakeResponse(200, {"status": 200, "address": "Rua A", "district": "Centro", "city": "Campinas", "state": "SP"}),
        }
    )
    endereco = buscar_cep("13010000", session=sessao)
    assert endereco["cidade"] == "Campinas"
    assert len(sessao.urls) == 3


def test_falha_total_devolve_none():
    sessao = FakeSession({"awesomeapi": FakeResponse(200, {"erro": True})})
    assert buscar_cep("01310100", session=sessao) is None
    assert len(sessao.urls) == 3


def test_cep_incompleto_nem_consulta():
    sessao = FakeSession({})
    assert buscar_cep("0131", session=sessao) is None
    assert sessao.urls == []


def test_sessao_propria_e_fechada(monkeypatch):
    class SessaoPropria(FakeSession):
        fechada = False

        def __enter__(self):
            return self

        def __exit__(self, *exc):
            self.fechada = True

    criadas = []

    def nova_sessao():
        s = SessaoPropria({"brasilapi": FakeResponse(200, {"city": "Santos", "state": "SP"})})
        criadas.append(s)
        return s

    monkeypatch.setattr(requests, "Session", nova_sessao)
    assert buscar_cep("11010000")["cidade"] == "Santos"
    (sessao,) = criadas
    assert sessao.fechada
