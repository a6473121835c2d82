"""
Cadastros simples da clínica: profissionais e catálogo de serviços.
"""
from __future__ import annotations

from typing import Any

from sqlalchemy import select

from .db import Database
from .errors import NaoEncontrado
from .logging_config import get_logger
from .models import Profissional, Servico
from .validacao import email_ou_none, inteiro_ou_none, numero, obrigatorio, percentual_ou_none, texto

logger = get_logger(__name__)


# =========================
# Profissionais
# =========================
def profissional_flat(p: Profissional) -> dict[str, Any]:
    return {
        "id": p.id,
        "nome": p.nome,
        "conselho": p.conselho,
        "especialidade": p.especialidade,
        "email": p.email,
        "telefone": p.telefone,
        "comissao_padrao_percent": p.comissao_padrao_percent,
        "created_at": p.created_at.isoformat() if p.created_at else None,
    }


def _dados_profissional(dados: dict[str, Any]) -> dict[str, Any]:
    return {
        "nome": obrigatorio(dados.get("nome"), "nome"),
        "conselho": texto(dados.get("conselho")),
        "especialidade": texto(dados.get("especialidade")),
        "email": email_ou_none(dados.get("email")),
        "telefone": texto(dados.get("telefone")),
        "comissao_padrao_percent": percentual_ou_none(dados.get("comissao_padrao_percent"), "comissao_padrao_percent"),
    }


def listar_profissionais(db: Database, clinica_id: str) -> list[dict[str, Any]]:
    with db.session() as s:
        rows = s.scalars(
            select(Profissional)
            .where(Profissional.clinica_id == clinica_id)
            .order_by(Profissional.created_at.desc())
        )
        return [profissional_flat(p) for p in rows]


def criar_profissional(db: Database, clinica_id: str, dados: dict[str, Any]) -> dict[str, Any]:
    valores = _dados_profissional(dados)
    with db.session() as s:
        p = Profissional(clinica_id=clinica_id, **valores)
        s.add(p)
        s.flush()
        logger.info("profissional_criado", clinica_id=clinica_id, profissional_id=p.id)
        return profissional_flat(p)


def atualizar_profissional(db: Database, clinica_id: str, profissional_id: str, dados: dict[str, Any]) -> dict[str, Any]:
    valores = _dados_profissional(dados)
    with db.session() as s:
        p = s.get(Profissional, profissional_id)
        if not p or p.clinica_id != clinica_id:
            raise NaoEncontrado("Profissional não encontrado")
        for campo, valor in valores.items():
            setattr(p, campo, valor)
        s.flush()
        logger.info("profissional_atualizado", clinica_id=clinica_id, profissional_id=p.id)
        return profissional_flat(p)


def remover_profissional(db: Database, clinica_id: str, profissional_id: str) -> None:
    with db.session() as s:
        p = s.get(Profissional, profissional_id)
        if not p or p.clinica_id != clinica_id:
            raise NaoEncontrado("Profissional não encontrado")
        s.delete(p)
        logger.info("profissional_removido", clinica_id=clinica_id, profissional_id=profissional_id)


# =========================
# Catálogo de serviços
# =========================
def servico_flat(sv: Servico) -> dict[str, Any]:
    return {
        "id": sv.id,
        "nome": sv.nome,
        "preco_base": sv.preco_base,
        "duracao_min": sv.duracao_min,
        "comissao_padrao_percent": sv.comissao_padrao_percent,
        "created_at": sv.created_at.isoformat() if sv.created_at else None,
    }


def _dados_servico(dados: dict[str, Any]) -> dict[str, Any]:
    # preço vazio ou inválido vira 0; duração e comissão viram nulo
    return {
        "nome": obrigatorio(dados.get("nome"), "nome"),
        "preco_base": numero(dados.get("preco_base"), 0.0),
        "duracao_min": inteiro_ou_none(dados.get("duracao_min")),
        "comissao_padrao_percent": percentual_ou_none(dados.get("comissao_padrao_percent"), "comissao_padrao_percent"),
    }


def listar_servicos(db: Database, clinica_id: str) -> list[dict[str, Any]]:
    with db.session() as s:
        rows = s.scalars(
            select(Servico).where(Servico.clinica_id == clinica_id).order_by(Servico.created_at.desc())
        )
        return [servico_flat(sv) for sv in rows]


def criar_servico(db: Database, clinica_id: str, dados: dict[str, Any]) -> dict[str, Any]:
    valores = _dados_servico(dados)
    with db.session() as s:
        sv = Servico(clinica_id=clinica_id, **valores)
        s.add(sv)
        s.flush()
        logger.info("servico_criado", clinica_id=clinica_id, servico_id=sv.id)
        return servico_flat(sv)


def atualizar_servico(db: Database, clinica_id: str, servico_id: str, dados: dict[str, Any]) -> dict[str, Any]:
    valores = _dados_servico(dados)
    with db.session() as s:
        sv = s.get(Servico, servico_id)
        if not sv or sv.clinica_id != clinica_id:
            raise NaoEncontrado("Serviço não encontrado")
        for campo, valor in valores.items():
            setattr(sv, campo, valor)
        s.flush()
        logger.info("servico_atualizado", clinica_id=clinica_id, servico_id=sv.id)
        return servico_flat(sv)


def remover_servico(db: Database, clinica_id: str, servico_id: str) -> None:
    with db.session() as s:
        sv = s.get(Servico, servico_id)
        if not sv or sv.clinica_id != clinica_id:
            raise NaoEncontrado("Serviço não encontrado")
        s.delete(sv)
        logger.info("servico_removido", clinica_id=clinica_id, servico_id=servico_id)
