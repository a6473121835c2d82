from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from dentalcare import agenda, cadastros, pacientes
from dentalcare.agenda import EventoAgenda, FiltrosAgenda
from dentalcare.errors import ErroValidacao

SP = ZoneInfo("America/Sao_Paulo")


def _ev(id, inicio, titulo="Consulta", prof="p1", tipo="consulta", status="agendado", paciente="Maria"):
    return EventoAgenda(
        id=id,
        titulo=titulo,
        paciente_id="pac",
        profissional_id=prof,
        data_inicio=inicio,
        data_fim=inicio + timedelta(hours=1),
        tipo=tipo,
        status=status,
        paciente_nome=paciente,
        profissional_nome="Dra. Ana",
    )


EVENTOS = [
    _ev("a", datetime(2026, 3, 10, 9, 0)),
    _ev("b", datetime(2026, 3, 10, 14, 3), titulo="Canal", prof="p2", tipo="procedimento"),
    _ev("c", datetime(2026, 3, 11, 0, 0), status="cancelado", paciente="João"),
    _ev("d", datetime(2026, 3, 12, 23, 59, 59), tipo="retorno"),
]


def test_sem_filtros_devolve_tudo_na_mesma_ordem():
    assert agenda.filtrar_eventos(EVENTOS, FiltrosAgenda()) == EVENTOS
    assert agenda.contar_filtros_ativos(FiltrosAgenda()) == 0


def test_busca_ignora_maiusculas():
    assert [e.id for e in agenda.filtrar_eventos(EVENTOS, FiltrosAgenda(busca="MARIA"))] == ["a", "b", "d"]
    assert [e.id for e in agenda.filtrar_eventos(EVENTOS, FiltrosAgenda(busca="canal"))] == ["b"]


def test_filtros_combinados_sao_subconjunto():
    filtros = FiltrosAgenda(profissional_id="p1", status="agendado")
    resultado = agenda.filtrar_eventos(EVENTOS, filtros)
    assert [e.id for e in resultado] == ["a", "d"]
    assert all(e in EVENTOS and e.profissional_id == "p1" and e.status == "agendado" for e in resultado)
    assert agenda.contar_filtros_ativos(filtros) == 2


def test_intervalo_de_datas_inclusivo_nas_duas_pontas():
    filtros = FiltrosAgenda(data_inicio=date(2026, 3, 11), data_fim=date(2026, 3, 12))
    assert [e.id for e in agenda.filtrar_eventos(EVENTOS, filtros)] == ["c", "d"]


def test_datas_com_fuso_convertidas_para_o_local():
    # 02:30 UTC do dia 11 = 23:30 do dia 10 em São Paulo
    utc = _ev("u", datetime(2026, 3, 11, 2, 30, tzinfo=timezone.utc))
    filtros = FiltrosAgenda(data_inicio=date(2026, 3, 10), data_fim=date(2026, 3, 10))
    assert agenda.filtrar_eventos([utc], filtros, SP) == [utc]
    with pytest.raises(ValueError):
        agenda.filtrar_eventos([utc], filtros)


def test_agenda_do_dia_agrupa_pela_hora_de_inicio():
    slots = agenda.agenda_do_dia(EVENTOS, date(2026, 3, 10))
    assert len(slots) == 16
    assert slots[0].horario == "07:00" and slots[-1].horario == "22:00"

    por_hora = {s.horario: s for s in slots}
    assert [e.id for e in por_hora["14:00"].eventos] == ["b"]
    assert [e.id for e in por_hora["09:00"].eventos] == ["a"]
    assert por_hora["10:00"].livre
    assert por_hora["10:00"].novo_evento_inicio == "2026-03-10T10:00:00"
    assert por_hora["10:00"].novo_evento_fim == "2026-03-10T11:00:00"
    assert por_hora["22:00"].como_dict()["novo_evento_fim"] == "2026-03-10T23:00:00"


def test_agenda_do_dia_por_profissional_e_colunas():
    mesmos = [_ev(str(i), datetime(2026, 3, 10, 8, i)) for i in range(5)]
    slots = {s.horario: s for s in agenda.agenda_do_dia(mesmos + EVENTOS, date(2026, 3, 10), profissional_id="p1")}
    assert len(slots["08:00"].eventos) == 5
    assert slots["08:00"].colunas == 3
    assert slots["14:00"].livre


def test_validar_evento_agrega_erros():
    with pytest.raises(ErroValidacao) as exc:
        agenda.validar_evento({"titulo": "", "data_inicio": "2026-03-10T10:00", "data_fim": "2026-03-10T09:00"})
    assert set(exc.value.campos) == {"titulo", "paciente_id", "profissional_id", "data_fim"}
    assert exc.value.campos["data_fim"] == "O término deve ser posterior ao início"


def test_novo_evento_no_horario():
    d = agenda.novo_evento_no_horario(datetime(2026, 3, 10, 15, 0))
    assert d == {"data_inicio": "2026-03-10T15:00:00", "data_fim": "2026-03-10T16:00:00"}


@pytest.fixture
def refs(db, clinica_id):
    pac = pacientes.criar(db, clinica_id, {"nome": "Maria", "data_nascimento": "1990-01-01", "celular": "11 98888-0000"})
    prof = cadastros.criar_profissional(db, clinica_id, {"nome": "Dra. Ana"})
    return pac["id"], prof["id"]


def _form(refs, inicio, fim, **extra):
    pac, prof = refs
    d = {"titulo": "Consulta", "paciente_id": pac, "profissional_id": prof, "data_inicio": inicio, "data_fim": fim}
    d.update(extra)
    return d


def test_criar_evento_resolve_nomes(db, clinica_id, refs):
    salvo = agenda.criar_evento(db, clinica_id, _form(refs, "2026-03-10T09:00:00", "2026-03-10T10:00:00"), SP)
    assert salvo.conflitos == []
    assert salvo.evento.paciente_nome == "Maria"
    assert salvo.evento.profissional_nome == "Dra. Ana"
    assert salvo.evento.paciente_telefone == "11 98888-0000"
    assert salvo.evento.status == "agendado"


def test_sobreposicao_e_informativa(db, clinica_id, refs):
    primeiro = agenda.criar_evento(db, clinica_id, _form(refs, "2026-03-10T09:00:00", "2026-03-10T10:00:00"), SP)
    segundo = agenda.criar_evento(db, clinica_id, _form(refs, "2026-03-10T09:30:00", "2026-03-10T10:30:00"), SP)
    assert segundo.conflitos == [primeiro.evento.id]

    # encostado no fim não conta
    terceiro = agenda.criar_evento(db, clinica_id, _form(refs, "2026-03-10T10:30:00", "2026-03-10T11:00:00"), SP)
    assert terceiro.conflitos == []

    # cancelado não gera nem entra em conflito
    agenda.atualizar_evento(
        db, clinica_id, primeiro.evento.id,
        _form(refs, "2026-03-10T09:00:00", "2026-03-10T10:00:00", status="cancelado"), SP,
    )
    atualizado = agenda.atualizar_evento(
        db, clinica_id, segundo.evento.id, _form(refs, "2026-03-10T09:30:00", "2026-03-10T10:30:00"), SP
    )
    assert atualizado.conflitos == []
    assert len(agenda.listar_eventos(db, clinica_id)) == 3


def test_entrada_com_fuso_gravada_no_horario_local(db, clinica_id, refs):
    salvo = agenda.criar_evento(db, clinica_id, _form(refs, "2026-03-10T12:00:00Z", "2026-03-10T13:00:00Z"), SP)
    assert salvo.evento.data_inicio == datetime(2026, 3, 10, 9, 0)


def test_referencia_de_outra_clinica(db, clinica_id, refs):
    with pytest.raises(ErroValidacao) as exc:
        agenda.criar_evento(db, "outra", _form(refs, "2026-03-10T09:00:00", "2026-03-10T10:00:00"), SP)
    assert set(exc.value.campos) == {"paciente_id", "profissional_id"}


def test_remover_evento(db, clinica_id, refs):
    salvo = agenda.criar_evento(db, clinica_id, _form(refs, "2026-03-10T09:00:00", "2026-03-10T10:00:00"), SP)
    agenda.remover_evento(db, clinica_id, salvo.evento.id)
    assert agenda.listar_eventos(db, clinica_id) == []
