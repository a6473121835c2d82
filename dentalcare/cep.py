"""
Consulta de endereço por CEP.

Provedores, nesta ordem (o primeiro que responder vence):
1) BrasilAPI v2  https://brasilapi.com.br/api/cep/v2/{cep}
2) AwesomeAPI    https://cep.awesomeapi.com.br/json/{cep}
3) ApiCEP        https://cdn.apicep.com/file/apicep/{cep}.json

Se todos falharem devolve None e o endereço é preenchido à mão.
"""
from __future__ import annotations

from typing import Any, Callable

import requests

from .logging_config import get_logger
from .validacao import normalizar_cep

logger = get_logger(__name__)

TIMEOUT_PADRAO = 6.0


def _brasilapi(j: dict[str, Any]) -> dict[str, Any] | None:
    return {"logradouro": j.get("street"), "bairro": j.get("neighborhood"), "cidade": j.get("city"), "uf": j.get("state")}


def _awesomeapi(j: dict[str, Any]) -> dict[str, Any] | None:
    if j.get("erro") or j.get("error"):
        return None
    return {"logradouro": j.get("address"), "bairro": j.get("district"), "cidade": j.get("city"), "uf": j.get("state")}


def _apicep(j: dict[str, Any]) -> dict[str, Any] | None:
    status = j.get("status")
    if status and status != 200:
        return None
    return {"logradouro": j.get("address"), "bairro": j.get("district"), "cidade": j.get("city"), "uf": j.get("state")}


PROVEDORES: list[tuple[str, str, Callable[[dict[str, Any]], dict[str, Any] | None]]] = [
    ("brasilapi", "https://brasilapi.com.br/api/cep/v2/{cep}", _brasilapi),
    ("awesomeapi", "https://cep.awesomeapi.com.br/json/{cep}", _awesomeapi),
    ("apicep", "https://cdn.apicep.com/file/apicep/{cep}.json", _apicep),
]


def _consultar(http: requests.Session, digitos: str, timeout: float) -> dict[str, Any] | None:
    for nome, modelo, extrair in PROVEDORES:
        try:
            r = http.get(modelo.format(cep=digitos), timeout=timeout)
            if not r.ok:
                logger.info("cep_provedor_sem_resultado", provedor=nome, cep=digitos, status=r.status_code)
                continue
            corpo = r.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning("cep_provedor_falhou", provedor=nome, cep=digitos, erro=str(e))
            continue

        endereco = extrair(corpo) if isinstance(corpo, dict) else None
        if endereco is not None:
            return {"cep": digitos, **endereco}

    logger.warning("cep_nao_encontrado", cep=digitos)
    return None


def buscar_cep(
    cep: str,
    session: requests.Session | None = None,
    timeout: float = TIMEOUT_PADRAO,
) -> dict[str, Any] | None:
    """Retorna {cep, logradouro, bairro, cidade, uf} ou None."""
    digitos = normalizar_cep(cep)
    if len(digitos) != 8:
        return None

    if session is not None:
        return _consultar(session, digitos, timeout)
    with requests.Session() as http:
        return _consultar(http, digitos, timeout)
