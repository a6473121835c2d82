"""
Configurações da clínica por categoria (blobs JSON) e preferências dos
cards do dashboard, gravadas em `interface.dashboard_cards`.
"""
from __future__ import annotations

from typing import Any, Iterable

from sqlalchemy import select

from .db import Database
from .errors import ErroValidacao
from .logging_config import get_logger
from .models import ConfiguracaoClinica

logger = get_logger(__name__)

CATEGORIAS = (
    "exibicao",
    "agenda",
    "pacientes",
    "financeiro",
    "interface",
    "comunicacao",
    "documentos",
    "seguranca",
    "integracao",
)

# id, título, descrição; a ordem da lista é a ordem padrão
CARDS_DASHBOARD: list[tuple[str, str, str]] = [
    ("pacientes", "Pacientes", "Exibe o número total de pacientes cadastrados"),
    ("consultas", "Consultas Hoje", "Exibe o número de consultas agendadas para hoje"),
    ("receita", "Receita Mensal", "Exibe a receita total do mês atual"),
    ("profissionais", "Profissionais", "Exibe o número total de profissionais cadastrados"),
    ("atividade", "Atividade Recente", "Exibe as últimas atividades realizadas no sistema"),
    ("agenda", "Agenda do Dia", "Exibe os próximos horários agendados para hoje"),
]
IDS_CARDS = [c[0] for c in CARDS_DASHBOARD]


def _categoria(categoria: str) -> str:
    if categoria not in CATEGORIAS:
        raise ErroValidacao("Categoria de configuração inválida", {"categoria": f"Use uma de: {', '.join(CATEGORIAS)}"})
    return categoria


def obter(db: Database, clinica_id: str, categoria: str) -> dict[str, Any] | None:
    categoria = _categoria(categoria)
    with db.session() as s:
        cfg = s.execute(
            select(ConfiguracaoClinica).where(
                ConfiguracaoClinica.clinica_id == clinica_id,
                ConfiguracaoClinica.categoria == categoria,
            )
        ).scalar_one_or_none()
        return dict(cfg.configuracoes) if cfg else None


def obter_todas(db: Database, clinica_id: str) -> dict[str, dict[str, Any]]:
    with db.session() as s:
        rows = s.scalars(select(ConfiguracaoClinica).where(ConfiguracaoClinica.clinica_id == clinica_id))
        return {c.categoria: dict(c.configuracoes) for c in rows}


def salvar(db: Database, clinica_id: str, categoria: str, configuracoes: dict[str, Any]) -> dict[str, Any]:
    """Upsert do blob inteiro da categoria."""
    categoria = _categoria(categoria)
    if not isinstance(configuracoes, dict):
        raise ErroValidacao("Configurações devem ser um objeto", {"configuracoes": "Objeto JSON esperado"})

    with db.session() as s:
        cfg = s.execute(
            select(ConfiguracaoClinica).where(
                ConfiguracaoClinica.clinica_id == clinica_id,
                ConfiguracaoClinica.categoria == categoria,
            )
        ).scalar_one_or_none()
        if cfg is None:
            cfg = ConfiguracaoClinica(clinica_id=clinica_id, categoria=categoria, configuracoes=dict(configuracoes))
            s.add(cfg)
        else:
            # atribui um dict novo para o ORM detectar a mudança no JSON
            cfg.configuracoes = dict(configuracoes)
        s.flush()
        logger.info("configuracao_salva", clinica_id=clinica_id, categoria=categoria)
        return dict(cfg.configuracoes)


# =========================
# Dashboard
# =========================
def cards_salvos(db: Database, clinica_id: str) -> list[str]:
    interface = obter(db, clinica_id, "interface") or {}
    salvos = interface.get("dashboard_cards")
    if not isinstance(salvos, list):
        return list(IDS_CARDS)
    return [c for c in salvos if c in IDS_CARDS]


def cards_dashboard(db: Database, clinica_id: str) -> list[dict[str, Any]]:
    """Todos os cards conhecidos: habilitados primeiro, na ordem salva; depois os demais."""
    salvos = cards_salvos(db, clinica_id)
    cards = []
    for i, (card_id, titulo, descricao) in enumerate(CARDS_DASHBOARD):
        habilitado = card_id in salvos
        cards.append(
            {
                "id": card_id,
                "title": titulo,
                "description": descricao,
                "enabled": habilitado,
                "order": salvos.index(card_id) if habilitado else len(CARDS_DASHBOARD) + i,
            }
        )
    cards.sort(key=lambda c: (not c["enabled"], c["order"]))
    return cards


def salvar_cards(db: Database, clinica_id: str, cards: Iterable[str]) -> list[str]:
    """Valida os ids, remove repetidos (fica a primeira ocorrência) e mescla no blob `interface`."""
    ordem: list[str] = []
    desconhecidos = []
    for card_id in cards:
        if card_id not in IDS_CARDS:
            desconhecidos.append(card_id)
        elif card_id not in ordem:
            ordem.append(card_id)
    if desconhecidos:
        raise ErroValidacao("Cards desconhecidos", {"cards": ", ".join(map(str, desconhecidos))})

    interface = obter(db, clinica_id, "interface") or {}
    interface["dashboard_cards"] = ordem
    salvar(db, clinica_id, "interface", interface)
    return ordem
