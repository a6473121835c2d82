"""
Financeiro: pagamentos e geração de link de pagamento.

O pagamento nasce `pendente`; o link é pedido ao gateway fora da transação
do banco. Se o gateway falhar, o pagamento vira `falhou` e o erro sobe como
`ErroGateway` com a mensagem do provedor.
"""
from __future__ import annotations

from typing import Any

import requests
from sqlalchemy import select

from .db import Database
from .errors import ErroGateway, ErroValidacao, NaoEncontrado
from .logging_config import get_logger
from .models import Evento, MetodoPagamento, Pagamento, StatusPagamento
from .validacao import numero, texto

logger = get_logger(__name__)

DESCRICAO_PADRAO = "Pagamento DentalCare Pro"
LIMITE_LISTA = 50
MAX_PARCELAS = 12


class LinkPagamentoGateway:
    """Cliente HTTP do provedor de links de pagamento (sessão `requests` injetada)."""

    def __init__(
        self,
        url: str | None,
        api_key: str | None = None,
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        self.url = url
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def criar_link(self, pagamento_id: str, valor: float, descricao: str, parcelas: int, metodo: str) -> str:
        if not self.url:
            raise ErroGateway("Gateway de pagamento não configurado")

        payload = {
            "pagamento_id": pagamento_id,
            # centavos
            "amount": int(round(valor * 100)),
            "description": descricao or DESCRICAO_PADRAO,
            "installments": parcelas,
            "method": metodo,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}

        try:
            r = self.session.post(self.url, json=payload, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise ErroGateway(f"Falha ao contatar o gateway de pagamento: {e}") from e

        try:
            corpo = r.json()
        except ValueError:
            corpo = {}
        if not isinstance(corpo, dict):
            corpo = {}

        if r.status_code >= 400:
            mensagem = corpo.get("error") or corpo.get("message") or r.text or f"HTTP {r.status_code}"
            raise ErroGateway(str(mensagem))

        url = corpo.get("url")
        if not url:
            raise ErroGateway("Resposta do gateway sem URL de pagamento")
        return str(url)


def pagamento_flat(p: Pagamento) -> dict[str, Any]:
    return {
        "id": p.id,
        "atendimento_id": p.atendimento_id,
        "metodo": p.metodo.value,
        "parcelas": p.parcelas,
        "valor_total": p.valor_total,
        "descricao": p.descricao,
        "status": p.status.value,
        "provider": p.provider,
        "provider_reference": p.provider_reference,
        "created_at": p.created_at.isoformat() if p.created_at else None,
    }


def listar_pagamentos(db: Database, clinica_id: str, limite: int = LIMITE_LISTA) -> list[dict[str, Any]]:
    with db.session() as s:
        rows = s.scalars(
            select(Pagamento)
            .where(Pagamento.clinica_id == clinica_id)
            .order_by(Pagamento.created_at.desc())
            .limit(limite)
        )
        return [pagamento_flat(p) for p in rows]


def _validar(dados: dict[str, Any]) -> dict[str, Any]:
    erros: dict[str, str] = {}

    valor = numero(dados.get("valor_total"))
    if valor <= 0:
        erros["valor_total"] = "Informe um valor maior que zero"

    try:
        metodo = MetodoPagamento(str(dados.get("metodo") or "cartao"))
    except ValueError:
        metodo = MetodoPagamento.CARTAO
        erros["metodo"] = "Método inválido"

    parcelas = int(numero(dados.get("parcelas"), 1))
    if metodo is MetodoPagamento.PIX:
        parcelas = 1
    elif not 1 <= parcelas <= MAX_PARCELAS:
        erros["parcelas"] = f"Parcelas entre 1 e {MAX_PARCELAS}"

    if erros:
        raise ErroValidacao("Verifique os dados do pagamento", erros)

    return {
        "valor_total": valor,
        "metodo": metodo,
        "parcelas": parcelas,
        "descricao": texto(dados.get("descricao")),
        "atendimento_id": texto(dados.get("atendimento_id")),
    }


def criar_pagamento(db: Database, clinica_id: str, dados: dict[str, Any]) -> dict[str, Any]:
    valores = _validar(dados)
    with db.session() as s:
        if valores["atendimento_id"]:
            ev = s.get(Evento, valores["atendimento_id"])
            if not ev or ev.clinica_id != clinica_id:
                raise ErroValidacao("Atendimento não encontrado", {"atendimento_id": "Não encontrado"})

        p = Pagamento(clinica_id=clinica_id, status=StatusPagamento.PENDENTE, **valores)
        s.add(p)
        s.flush()
        logger.info("pagamento_criado", clinica_id=clinica_id, pagamento_id=p.id, valor=p.valor_total)
        return pagamento_flat(p)


def gerar_link(db: Database, gateway: LinkPagamentoGateway, clinica_id: str, dados: dict[str, Any]) -> dict[str, Any]:
    """
    Cria o pagamento pendente e pede o link ao gateway.
    - sucesso: URL gravada em provider_reference
    - falha: pagamento marcado como falhou e ErroGateway propagado
    """
    pagamento = criar_pagamento(db, clinica_id, dados)

    try:
        url = gateway.criar_link(
            pagamento_id=pagamento["id"],
            valor=pagamento["valor_total"],
            descricao=pagamento["descricao"] or DESCRICAO_PADRAO,
            parcelas=pagamento["parcelas"],
            metodo=pagamento["metodo"],
        )
    except ErroGateway as e:
        logger.warning("link_pagamento_falhou", clinica_id=clinica_id, pagamento_id=pagamento["id"], erro=str(e))
        with db.session() as s:
            p = s.get(Pagamento, pagamento["id"])
            if p is not None:
                p.status = StatusPagamento.FALHOU
        raise

    with db.session() as s:
        p = s.get(Pagamento, pagamento["id"])
        if p is None:
            raise NaoEncontrado("Pagamento não encontrado")
        p.provider_reference = url
        s.flush()
        logger.info("link_pagamento_gerado", clinica_id=clinica_id, pagamento_id=p.id)
        return {"pagamento": pagamento_flat(p), "url": url}


def alterar_status(db: Database, clinica_id: str, pagamento_id: str, status: StatusPagamento) -> dict[str, Any]:
    with db.session() as s:
        p = s.get(Pagamento, pagamento_id)
        if not p or p.clinica_id != clinica_id:
            raise NaoEncontrado("Pagamento não encontrado")
        p.status = status
        s.flush()
        logger.info("pagamento_status", clinica_id=clinica_id, pagamento_id=p.id, status=status.value)
        return pagamento_flat(p)
