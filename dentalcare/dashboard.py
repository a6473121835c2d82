from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Any
from zoneinfo import ZoneInfo

from sqlalchemy import func, select

from .db import Database
from .models import Evento, Paciente, Pagamento, Profissional, StatusEvento, StatusPagamento


def hoje_local(fuso: ZoneInfo | None = None, agora: datetime | None = None) -> date:
    """Data de hoje no fuso da clínica (o host pode estar em UTC)."""
    agora = agora or datetime.now(timezone.utc)
    if fuso is None:
        return agora.date()
    return agora.astimezone(fuso).date()


def _para_utc(dt: datetime, fuso: ZoneInfo | None) -> datetime:
    # created_at é gravado em UTC sem fuso
    if fuso is None:
        return dt
    return dt.replace(tzinfo=fuso).astimezone(timezone.utc).replace(tzinfo=None)


def resumo(db: Database, clinica_id: str, hoje: date | None = None, fuso: ZoneInfo | None = None) -> dict[str, Any]:
    """Números dos cards do dashboard; agenda no horário local, receita pelo mês local."""
    hoje = hoje or hoje_local(fuso)
    inicio_dia = datetime.combine(hoje, datetime.min.time())
    fim_dia = inicio_dia + timedelta(days=1)
    inicio_mes = _para_utc(datetime(hoje.year, hoje.month, 1), fuso)
    fim_mes = _para_utc(datetime(hoje.year + (hoje.month == 12), hoje.month % 12 + 1, 1), fuso)

    with db.session() as s:
        pacientes = s.scalar(select(func.count(Paciente.id)).where(Paciente.clinica_id == clinica_id))
        profissionais = s.scalar(select(func.count(Profissional.id)).where(Profissional.clinica_id == clinica_id))
        consultas_hoje = s.scalar(
            select(func.count(Evento.id)).where(
                Evento.clinica_id == clinica_id,
                Evento.data_inicio >= inicio_dia,
                Evento.data_inicio < fim_dia,
                Evento.status != StatusEvento.CANCELADO,
            )
        )
        receita_mes = s.scalar(
            select(func.coalesce(func.sum(Pagamento.valor_total), 0)).where(
                Pagamento.clinica_id == clinica_id,
                Pagamento.status == StatusPagamento.PAGO,
                Pagamento.created_at >= inicio_mes,
                Pagamento.created_at < fim_mes,
            )
        )
        agenda_hoje = s.execute(
            select(Evento.id, Evento.titulo, Evento.data_inicio, Paciente.nome.label("paciente_nome"))
            .join(Paciente, Paciente.id == Evento.paciente_id)
            .where(
                Evento.clinica_id == clinica_id,
                Evento.data_inicio >= inicio_dia,
                Evento.data_inicio < fim_dia,
                Evento.status != StatusEvento.CANCELADO,
            )
            .order_by(Evento.data_inicio.asc())
        ).all()

    return {
        "pacientes": pacientes or 0,
        "profissionais": profissionais or 0,
        "consultas": consultas_hoje or 0,
        "receita": float(receita_mes or 0),
        "agenda": [
            {"id": r.id, "titulo": r.titulo, "hora": r.data_inicio.strftime("%H:%M"), "paciente": r.paciente_nome}
            for r in agenda_hoje
        ],
    }
