"""
Agenda da clínica.

- CRUD de agendamentos (com nomes de paciente/profissional já resolvidos)
- filtro em memória (`filtrar_eventos`), função pura
- visão diária em faixas de uma hora (`agenda_do_dia`)
- relatório de sobreposição por profissional: informativo, não bloqueia

Datas ficam sem fuso no banco, no horário local da clínica.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any, Iterable
from zoneinfo import ZoneInfo

from sqlalchemy import and_, select
from sqlalchemy.orm import Session, joinedload

from .db import Database
from .errors import ErroValidacao, NaoEncontrado
from .logging_config import get_logger
from .models import Evento, Paciente, Profissional, StatusEvento, TipoEvento
from .validacao import numero_ou_none, texto

logger = get_logger(__name__)

# régua da visão diária: 07:00 .. 22:00
HORA_INICIAL = 7
HORA_FINAL = 22
MAX_COLUNAS = 3
DURACAO_PADRAO = timedelta(hours=1)


# =========================
# DTO
# =========================
@dataclass(frozen=True)
class EventoAgenda:
    id: str
    titulo: str
    paciente_id: str
    profissional_id: str
    data_inicio: datetime
    data_fim: datetime
    tipo: str
    status: str
    observacoes: str | None = None
    valor: float | None = None
    paciente_nome: str | None = None
    profissional_nome: str | None = None
    paciente_telefone: str | None = None
    whatsapp_enviado: bool = False
    lembrete_enviado: bool = False

    def como_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["data_inicio"] = self.data_inicio.isoformat()
        d["data_fim"] = self.data_fim.isoformat()
        return d


@dataclass(frozen=True)
class FiltrosAgenda:
    busca: str = ""
    profissional_id: str = ""
    tipo: str = ""
    status: str = ""
    data_inicio: date | None = None
    data_fim: date | None = None


@dataclass
class SlotHorario:
    horario: str
    eventos: list[EventoAgenda] = field(default_factory=list)
    novo_evento_inicio: str = ""
    novo_evento_fim: str = ""

    @property
    def livre(self) -> bool:
        return not self.eventos

    @property
    def colunas(self) -> int:
        return min(len(self.eventos), MAX_COLUNAS)

    def como_dict(self) -> dict[str, Any]:
        return {
            "horario": self.horario,
            "eventos": [e.como_dict() for e in self.eventos],
            "livre": self.livre,
            "colunas": self.colunas,
            "novo_evento_inicio": self.novo_evento_inicio,
            "novo_evento_fim": self.novo_evento_fim,
        }


@dataclass(frozen=True)
class EventoSalvo:
    evento: EventoAgenda
    conflitos: list[str]

    def como_dict(self) -> dict[str, Any]:
        return {"evento": self.evento.como_dict(), "conflitos": list(self.conflitos)}


# =========================
# Fuso
# =========================
def para_local(dt: datetime, fuso: ZoneInfo | None = None) -> datetime:
    """Datas com fuso são convertidas para o horário da clínica; sem fuso já são locais."""
    if dt.tzinfo is None:
        return dt
    if fuso is None:
        raise ValueError("fuso obrigatório para datas com timezone")
    return dt.astimezone(fuso).replace(tzinfo=None)


# =========================
# Filtro (puro)
# =========================
def contar_filtros_ativos(filtros: FiltrosAgenda) -> int:
    return sum(1 for v in asdict(filtros).values() if v not in ("", None))


def _contem(valor: str | None, termo: str) -> bool:
    return bool(valor) and termo in valor.lower()


def filtrar_eventos(
    eventos: Iterable[EventoAgenda], filtros: FiltrosAgenda, fuso: ZoneInfo | None = None
) -> list[EventoAgenda]:
    """
    Aplica todos os filtros ativos (E lógico), preservando a ordem de entrada.
    Os limites de data são inclusivos: do início de `data_inicio` até o fim de `data_fim`.
    """
    termo = (filtros.busca or "").strip().lower()
    desde = datetime.combine(filtros.data_inicio, time.min) if filtros.data_inicio else None
    ate = datetime.combine(filtros.data_fim + timedelta(days=1), time.min) if filtros.data_fim else None

    resultado: list[EventoAgenda] = []
    for e in eventos:
        if termo and not (
            _contem(e.titulo, termo)
            or _contem(e.paciente_nome, termo)
            or _contem(e.profissional_nome, termo)
            or _contem(e.observacoes, termo)
        ):
            continue
        if filtros.profissional_id and e.profissional_id != filtros.profissional_id:
            continue
        if filtros.tipo and e.tipo != filtros.tipo:
            continue
        if filtros.status and e.status != filtros.status:
            continue
        if desde is not None or ate is not None:
            inicio = para_local(e.data_inicio, fuso)
            if desde is not None and inicio < desde:
                continue
            if ate is not None and inicio >= ate:
                continue
        resultado.append(e)
    return resultado


# =========================
# Visão diária
# =========================
def agenda_do_dia(
    eventos: Iterable[EventoAgenda],
    dia: date,
    profissional_id: str | None = None,
    fuso: ZoneInfo | None = None,
) -> list[SlotHorario]:
    """
    Agrupa os eventos do dia em faixas de uma hora (07:00..22:00) pela hora de início.
    Eventos fora da régua não aparecem em nenhuma faixa.
    """
    slots = {}
    for hora in range(HORA_INICIAL, HORA_FINAL + 1):
        novo = novo_evento_no_horario(datetime.combine(dia, time(hora)))
        slots[hora] = SlotHorario(
            horario=f"{hora:02d}:00",
            novo_evento_inicio=novo["data_inicio"],
            novo_evento_fim=novo["data_fim"],
        )

    for e in eventos:
        if profissional_id and e.profissional_id != profissional_id:
            continue
        inicio = para_local(e.data_inicio, fuso)
        if inicio.date() != dia:
            continue
        slot = slots.get(inicio.hour)
        if slot is not None:
            slot.eventos.append(e)

    for slot in slots.values():
        slot.eventos.sort(key=lambda ev: para_local(ev.data_inicio, fuso))
    return list(slots.values())


# =========================
# Persistência
# =========================
def _evento_dto(ev: Evento) -> EventoAgenda:
    return EventoAgenda(
        id=ev.id,
        titulo=ev.titulo,
        paciente_id=ev.paciente_id,
        profissional_id=ev.profissional_id,
        data_inicio=ev.data_inicio,
        data_fim=ev.data_fim,
        tipo=ev.tipo.value,
        status=ev.status.value,
        observacoes=ev.observacoes,
        valor=ev.valor,
        paciente_nome=ev.paciente.nome if ev.paciente else None,
        profissional_nome=ev.profissional.nome if ev.profissional else None,
        paciente_telefone=(ev.paciente.celular or ev.paciente.telefone) if ev.paciente else None,
        whatsapp_enviado=ev.whatsapp_enviado,
        lembrete_enviado=ev.lembrete_enviado,
    )


def _data_hora(valor: Any, campo: str, fuso: ZoneInfo | None) -> datetime:
    if valor is None or valor == "":
        raise ErroValidacao("Obrigatório", {campo: "Obrigatório"})
    if isinstance(valor, datetime):
        dt = valor
    else:
        try:
            dt = datetime.fromisoformat(str(valor).strip().replace("Z", "+00:00"))
        except ValueError:
            raise ErroValidacao("Data/hora inválida", {campo: "Data/hora inválida"})
    return para_local(dt, fuso)


def _enum(cls, valor: Any, campo: str, padrao):
    if valor is None or valor == "":
        return padrao
    if isinstance(valor, cls):
        return valor
    try:
        return cls(str(valor))
    except ValueError:
        raise ErroValidacao(f"{campo.capitalize()} inválido", {campo: "Valor inválido"})


def validar_evento(dados: dict[str, Any], fuso: ZoneInfo | None = None) -> dict[str, Any]:
    """Valida o formulário do agendamento e devolve os valores das colunas."""
    erros: dict[str, str] = {}
    titulo = texto(dados.get("titulo"))
    paciente_id = texto(dados.get("paciente_id"))
    profissional_id = texto(dados.get("profissional_id"))
    if not titulo:
        erros["titulo"] = "Obrigatório"
    if not paciente_id:
        erros["paciente_id"] = "Obrigatório"
    if not profissional_id:
        erros["profissional_id"] = "Obrigatório"

    inicio = fim = None
    for campo in ("data_inicio", "data_fim"):
        try:
            valor = _data_hora(dados.get(campo), campo, fuso)
        except ErroValidacao as e:
            erros.update(e.campos)
            continue
        if campo == "data_inicio":
            inicio = valor
        else:
            fim = valor

    if inicio is not None and fim is not None and fim <= inicio:
        erros["data_fim"] = "O término deve ser posterior ao início"
    if erros:
        raise ErroValidacao("Verifique os campos do agendamento", erros)

    return {
        "titulo": titulo,
        "paciente_id": paciente_id,
        "profissional_id": profissional_id,
        "data_inicio": inicio,
        "data_fim": fim,
        "tipo": _enum(TipoEvento, dados.get("tipo"), "tipo", TipoEvento.CONSULTA),
        "status": _enum(StatusEvento, dados.get("status"), "status", StatusEvento.AGENDADO),
        "observacoes": texto(dados.get("observacoes")),
        "valor": numero_ou_none(dados.get("valor")),
    }


def _checar_referencias(s: Session, clinica_id: str, paciente_id: str, profissional_id: str) -> None:
    erros: dict[str, str] = {}
    p = s.get(Paciente, paciente_id)
    if not p or p.clinica_id != clinica_id:
        erros["paciente_id"] = "Paciente não encontrado"
    pr = s.get(Profissional, profissional_id)
    if not pr or pr.clinica_id != clinica_id:
        erros["profissional_id"] = "Profissional não encontrado"
    if erros:
        raise ErroValidacao("Verifique os campos do agendamento", erros)


def eventos_sobrepostos(
    s: Session,
    clinica_id: str,
    profissional_id: str,
    inicio: datetime,
    fim: datetime,
    ignorar_id: str | None = None,
) -> list[str]:
    """Ids dos agendamentos não cancelados do profissional que cruzam [inicio, fim)."""
    q = (
        select(Evento.id)
        .where(
            and_(
                Evento.clinica_id == clinica_id,
                Evento.profissional_id == profissional_id,
                Evento.status != StatusEvento.CANCELADO,
                # sobreposição [inicio, fim)
                Evento.data_inicio < fim,
                Evento.data_fim > inicio,
            )
        )
        .order_by(Evento.data_inicio.asc())
    )
    if ignorar_id:
        q = q.where(Evento.id != ignorar_id)
    return list(s.scalars(q))


def listar_eventos(db: Database, clinica_id: str) -> list[EventoAgenda]:
    with db.session() as s:
        rows = s.scalars(
            select(Evento)
            .options(joinedload(Evento.paciente), joinedload(Evento.profissional))
            .where(Evento.clinica_id == clinica_id)
            .order_by(Evento.data_inicio.asc())
        )
        return [_evento_dto(ev) for ev in rows]


def obter_evento(db: Database, clinica_id: str, evento_id: str) -> EventoAgenda:
    with db.session() as s:
        ev = s.get(Evento, evento_id)
        if not ev or ev.clinica_id != clinica_id:
            raise NaoEncontrado("Agendamento não encontrado")
        return _evento_dto(ev)


def criar_evento(
    db: Database, clinica_id: str, dados: dict[str, Any], fuso: ZoneInfo | None = None
) -> EventoSalvo:
    valores = validar_evento(dados, fuso)
    with db.session() as s:
        _checar_referencias(s, clinica_id, valores["paciente_id"], valores["profissional_id"])
        conflitos: list[str] = []
        if valores["status"] is not StatusEvento.CANCELADO:
            conflitos = eventos_sobrepostos(
                s, clinica_id, valores["profissional_id"], valores["data_inicio"], valores["data_fim"]
            )

        ev = Evento(clinica_id=clinica_id, **valores)
        s.add(ev)
        s.flush()
        s.refresh(ev)

        logger.info("agendamento_criado", clinica_id=clinica_id, evento_id=ev.id, conflitos=len(conflitos))
        return EventoSalvo(evento=_evento_dto(ev), conflitos=conflitos)


def atualizar_evento(
    db: Database, clinica_id: str, evento_id: str, dados: dict[str, Any], fuso: ZoneInfo | None = None
) -> EventoSalvo:
    valores = validar_evento(dados, fuso)
    with db.session() as s:
        ev = s.get(Evento, evento_id)
        if not ev or ev.clinica_id != clinica_id:
            raise NaoEncontrado("Agendamento não encontrado")
        _checar_referencias(s, clinica_id, valores["paciente_id"], valores["profissional_id"])

        for campo, valor in valores.items():
            setattr(ev, campo, valor)
        s.flush()
        s.refresh(ev)

        conflitos: list[str] = []
        if ev.status is not StatusEvento.CANCELADO:
            conflitos = eventos_sobrepostos(
                s, clinica_id, ev.profissional_id, ev.data_inicio, ev.data_fim, ignorar_id=ev.id
            )

        logger.info("agendamento_atualizado", clinica_id=clinica_id, evento_id=ev.id, conflitos=len(conflitos))
        return EventoSalvo(evento=_evento_dto(ev), conflitos=conflitos)


def remover_evento(db: Database, clinica_id: str, evento_id: str) -> None:
    with db.session() as s:
        ev = s.get(Evento, evento_id)
        if not ev or ev.clinica_id != clinica_id:
            raise NaoEncontrado("Agendamento não encontrado")
        s.delete(ev)
        logger.info("agendamento_removido", clinica_id=clinica_id, evento_id=evento_id)


def novo_evento_no_horario(inicio: datetime) -> dict[str, str]:
    """Valores iniciais do formulário aberto a partir de uma faixa livre: uma hora de duração."""
    return {"data_inicio": inicio.isoformat(), "data_fim": (inicio + DURACAO_PADRAO).isoformat()}
