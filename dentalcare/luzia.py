"""
LuzIA: regras de mensagens automáticas da clínica (somente configuração).

O envio das mensagens não acontece aqui; o log de atividade é só leitura.
"""
from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta
from typing import Any, Mapping

from sqlalchemy import select

from .db import Database
from .errors import ErroPermissao
from .logging_config import get_logger
from .models import Clinica, LuziaConfiguracao, LuziaLog
from .permissoes import Perfil
from .validacao import inteiro_ou_none, texto

logger = get_logger(__name__)

LIMITE_LOGS = 50

MENSAGEM_CONFIRMACAO = (
    "Olá! Este é um lembrete do seu agendamento na {clinica} para {data} às {hora}. "
    "Confirme digitando SIM ou reagende digitando REAGENDAR."
)
MENSAGEM_REAGENDAMENTO = "Seu agendamento foi reagendado para {nova_data} às {nova_hora}. Confirme digitando SIM."
MENSAGEM_CANCELAMENTO = "Seu agendamento foi cancelado. Entre em contato conosco para reagendar."

PADRAO: dict[str, Any] = {
    "ativo": False,
    "confirmacao_agendamento": False,
    "reagendamento_automatico": False,
    "cancelamento_automatico": False,
    "antecedencia_confirmacao_horas": 24,
    "antecedencia_reagendamento_horas": 2,
    "mensagem_confirmacao": MENSAGEM_CONFIRMACAO,
    "mensagem_reagendamento": MENSAGEM_REAGENDAMENTO,
    "mensagem_cancelamento": MENSAGEM_CANCELAMENTO,
    "telefone_whatsapp": None,
    "api_key_whatsapp": None,
}

CAMPOS_BOOL = ("ativo", "confirmacao_agendamento", "reagendamento_automatico", "cancelamento_automatico")
CAMPOS_MENSAGEM = ("mensagem_confirmacao", "mensagem_reagendamento", "mensagem_cancelamento")

_RE_MARCADOR = re.compile(r"\{(\w+)\}")


def mascarar(chave: str | None) -> str | None:
    if not chave:
        return None
    if len(chave) <= 4:
        return "****"
    return "****" + chave[-4:]


def renderizar_mensagem(modelo: str, valores: Mapping[str, Any]) -> str:
    """Troca {marcador} pelo valor; marcadores sem valor ficam como estão."""

    def _troca(m: re.Match) -> str:
        nome = m.group(1)
        return str(valores[nome]) if nome in valores else m.group(0)

    return _RE_MARCADOR.sub(_troca, modelo)


def exemplo_mensagens(config: Mapping[str, Any], clinica: str, quando: datetime, nova: datetime | None = None) -> dict[str, str]:
    """Pré-visualização dos três modelos com dados de exemplo."""
    nova = nova or quando
    valores = {
        "clinica": clinica,
        "data": quando.strftime("%d/%m/%Y"),
        "hora": quando.strftime("%H:%M"),
        "nova_data": nova.strftime("%d/%m/%Y"),
        "nova_hora": nova.strftime("%H:%M"),
    }
    return {campo: renderizar_mensagem(config.get(campo) or PADRAO[campo], valores) for campo in CAMPOS_MENSAGEM}


def _flat(cfg: LuziaConfiguracao | None) -> dict[str, Any]:
    if cfg is None:
        return dict(PADRAO)
    d = {campo: getattr(cfg, campo) for campo in PADRAO}
    d["api_key_whatsapp"] = mascarar(cfg.api_key_whatsapp)
    return d


def _linha(s, clinica_id: str) -> LuziaConfiguracao | None:
    return s.execute(select(LuziaConfiguracao).where(LuziaConfiguracao.clinica_id == clinica_id)).scalar_one_or_none()


def obter_configuracao(db: Database, clinica_id: str) -> dict[str, Any]:
    with db.session() as s:
        return _flat(_linha(s, clinica_id))


def pre_visualizacao(db: Database, clinica_id: str, hoje: date) -> dict[str, str]:
    # consulta de exemplo amanhã às 09:00, reagendada para depois de amanhã às 14:30
    quando = datetime.combine(hoje + timedelta(days=1), time(9, 0))
    nova = datetime.combine(hoje + timedelta(days=2), time(14, 30))
    with db.session() as s:
        cfg = _linha(s, clinica_id)
        clinica = s.get(Clinica, clinica_id)
        modelos = {campo: getattr(cfg, campo) for campo in CAMPOS_MENSAGEM} if cfg else PADRAO
        return exemplo_mensagens(modelos, clinica.nome if clinica else "", quando, nova)


def salvar_configuracao(db: Database, perfil: Perfil, dados: Mapping[str, Any]) -> dict[str, Any]:
    """Somente o master altera a LuzIA. Chave de API vazia ou mascarada mantém a atual."""
    if not perfil.is_master:
        raise ErroPermissao("Apenas o master pode alterar a LuzIA")

    with db.session() as s:
        cfg = _linha(s, perfil.clinica_id)
        if cfg is None:
            cfg = LuziaConfiguracao(clinica_id=perfil.clinica_id, **{k: v for k, v in PADRAO.items()})
            s.add(cfg)

        for campo in CAMPOS_BOOL:
            if campo in dados:
                setattr(cfg, campo, bool(dados[campo]))

        if "antecedencia_confirmacao_horas" in dados:
            cfg.antecedencia_confirmacao_horas = inteiro_ou_none(dados["antecedencia_confirmacao_horas"]) or 24
        if "antecedencia_reagendamento_horas" in dados:
            cfg.antecedencia_reagendamento_horas = inteiro_ou_none(dados["antecedencia_reagendamento_horas"]) or 2

        for campo in CAMPOS_MENSAGEM:
            if campo in dados:
                setattr(cfg, campo, texto(dados[campo]) or PADRAO[campo])

        if "telefone_whatsapp" in dados:
            cfg.telefone_whatsapp = texto(dados["telefone_whatsapp"])

        chave = texto(dados.get("api_key_whatsapp"))
        if chave and chave != mascarar(cfg.api_key_whatsapp):
            cfg.api_key_whatsapp = chave

        s.flush()
        logger.info("luzia_configurada", clinica_id=perfil.clinica_id, ativo=cfg.ativo)
        return _flat(cfg)


def listar_logs(db: Database, clinica_id: str, limite: int = LIMITE_LOGS) -> list[dict[str, Any]]:
    with db.session() as s:
        rows = s.scalars(
            select(LuziaLog)
            .where(LuziaLog.clinica_id == clinica_id)
            .order_by(LuziaLog.created_at.desc(), LuziaLog.id.desc())
            .limit(limite)
        )
        return [
            {
                "id": log.id,
                "tipo_acao": log.tipo_acao,
                "status": log.status,
                "mensagem_enviada": log.mensagem_enviada,
                "resposta_recebida": log.resposta_recebida,
                "telefone_destino": log.telefone_destino,
                "erro": log.erro,
                "created_at": log.created_at.isoformat() if log.created_at else None,
            }
            for log in rows
        ]
