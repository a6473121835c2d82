"""
Catálogo de convênios odontológicos e seus planos.

Lê das tabelas `convenios`/`planos`; com as tabelas vazias usa o catálogo
estático abaixo. O resultado fica em cache na instância do catálogo.
"""
from __future__ import annotations

from typing import Any

from sqlalchemy import select

from .db import Database
from .logging_config import get_logger
from .models import Convenio, Plano

logger = get_logger(__name__)

CONVENIOS_ESTATICOS: list[dict[str, str]] = [
    {"id": "amil", "nome": "Amil Dental"},
    {"id": "bradesco", "nome": "Bradesco Dental"},
    {"id": "sulamerica", "nome": "SulAmérica Odonto"},
    {"id": "porto", "nome": "Porto Seguro Odonto"},
    {"id": "odontoprev", "nome": "OdontoPrev"},
    {"id": "unimed", "nome": "Unimed Odonto"},
    {"id": "hapvida", "nome": "Hapvida NotreDame Odonto"},
    {"id": "allianz", "nome": "Allianz Dental"},
]

PLANOS_ESTATICOS: list[dict[str, str]] = [
    {"id": "amil-essencial", "convenio_id": "amil", "nome": "Essencial"},
    {"id": "amil-plus", "convenio_id": "amil", "nome": "Plus"},
    {"id": "amil-premium", "convenio_id": "amil", "nome": "Premium"},
    {"id": "brad-essencial", "convenio_id": "bradesco", "nome": "Essencial"},
    {"id": "brad-top", "convenio_id": "bradesco", "nome": "Top"},
    {"id": "sula-basic", "convenio_id": "sulamerica", "nome": "Basic"},
    {"id": "sula-max", "convenio_id": "sulamerica", "nome": "Max"},
    {"id": "porto-light", "convenio_id": "porto", "nome": "Light"},
    {"id": "porto-total", "convenio_id": "porto", "nome": "Total"},
    {"id": "oprev-empresa", "convenio_id": "odontoprev", "nome": "Empresa"},
    {"id": "oprev-familia", "convenio_id": "odontoprev", "nome": "Família"},
    {"id": "uni-essencial", "convenio_id": "unimed", "nome": "Essencial"},
    {"id": "uni-executivo", "convenio_id": "unimed", "nome": "Executivo"},
    {"id": "hap-odonto", "convenio_id": "hapvida", "nome": "Odonto"},
    {"id": "hap-odonto-plus", "convenio_id": "hapvida", "nome": "Odonto Plus"},
    {"id": "all-basic", "convenio_id": "allianz", "nome": "Basic"},
    {"id": "all-premium", "convenio_id": "allianz", "nome": "Premium"},
]


class CatalogoConvenios:
    def __init__(self, db: Database) -> None:
        self.db = db
        self._convenios: list[dict[str, Any]] | None = None
        self._planos: dict[str, list[dict[str, Any]]] = {}

    def listar_convenios(self) -> list[dict[str, Any]]:
        if self._convenios is not None:
            return self._convenios

        with self.db.session() as s:
            rows = s.execute(select(Convenio.id, Convenio.nome).order_by(Convenio.nome)).all()
            convenios = [{"id": r.id, "nome": r.nome} for r in rows]

        if not convenios:
            convenios = sorted(CONVENIOS_ESTATICOS, key=lambda c: c["nome"])
        self._convenios = convenios
        return convenios

    def listar_planos(self, convenio_id: str) -> list[dict[str, Any]]:
        if not convenio_id:
            return []
        if convenio_id in self._planos:
            return self._planos[convenio_id]

        with self.db.session() as s:
            rows = s.execute(
                select(Plano.id, Plano.convenio_id, Plano.nome)
                .where(Plano.convenio_id == convenio_id)
                .order_by(Plano.nome)
            ).all()
            planos = [{"id": r.id, "convenio_id": r.convenio_id, "nome": r.nome} for r in rows]

        if not planos:
            planos = sorted(
                (p for p in PLANOS_ESTATICOS if p["convenio_id"] == convenio_id),
                key=lambda p: p["nome"],
            )
        self._planos[convenio_id] = planos
        return planos

    def limpar_cache(self) -> None:
        self._convenios = None
        self._planos.clear()


def seed_convenios(db: Database) -> int:
    """Insere o catálogo estático (idempotente). Retorna quantas linhas foram criadas."""
    criados = 0
    with db.session() as s:
        existentes = set(s.scalars(select(Convenio.id)))
        for c in CONVENIOS_ESTATICOS:
            if c["id"] not in existentes:
                s.add(Convenio(id=c["id"], nome=c["nome"]))
                criados += 1
        s.flush()

        planos_existentes = set(s.scalars(select(Plano.id)))
        for p in PLANOS_ESTATICOS:
            if p["id"] not in planos_existentes:
                s.add(Plano(id=p["id"], convenio_id=p["convenio_id"], nome=p["nome"]))
                criados += 1

    if criados:
        logger.info("convenios_semeados", linhas=criados)
    return criados
