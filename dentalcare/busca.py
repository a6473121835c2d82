"""
Busca global (pacientes e profissionais pelo nome).

`BuscaDebounced` é o lado cliente: espera o usuário parar de digitar e
descarta respostas de buscas antigas pelo contador de geração.
"""
from __future__ import annotations

import threading
from typing import Any, Callable, Generic, TypeVar

from sqlalchemy import select

from .db import Database
from .logging_config import get_logger
from .models import Paciente, Profissional

logger = get_logger(__name__)

MIN_CARACTERES = 2
LIMITE_POR_TIPO = 5
ATRASO_SEGUNDOS = 0.3

T = TypeVar("T")


def buscar(db: Database, clinica_id: str, termo: str) -> list[dict[str, Any]]:
    termo = (termo or "").strip()
    if len(termo) < MIN_CARACTERES:
        return []

    like = f"%{termo}%"
    with db.session() as s:
        pacientes = s.execute(
            select(Paciente.id, Paciente.nome, Paciente.email)
            .where(Paciente.clinica_id == clinica_id, Paciente.nome.ilike(like))
            .order_by(Paciente.nome)
            .limit(LIMITE_POR_TIPO)
        ).all()
        profissionais = s.execute(
            select(Profissional.id, Profissional.nome, Profissional.especialidade)
            .where(Profissional.clinica_id == clinica_id, Profissional.nome.ilike(like))
            .order_by(Profissional.nome)
            .limit(LIMITE_POR_TIPO)
        ).all()

    resultados = [{"tipo": "paciente", "id": r.id, "nome": r.nome, "detalhe": r.email} for r in pacientes]
    resultados += [
        {"tipo": "profissional", "id": r.id, "nome": r.nome, "detalhe": r.especialidade} for r in profissionais
    ]
    return resultados


class BuscaDebounced(Generic[T]):
    """
    Executa `executar(termo)` só depois de `atraso` segundos sem nova digitação.
    Cada digitação incrementa a geração; um resultado cuja geração não é mais
    a atual é descartado em vez de sobrescrever um mais novo.
    """

    def __init__(
        self,
        executar: Callable[[str], T],
        ao_resultado: Callable[[str, T | None], None],
        atraso: float = ATRASO_SEGUNDOS,
        min_caracteres: int = MIN_CARACTERES,
    ) -> None:
        self._executar = executar
        self._ao_resultado = ao_resultado
        self._atraso = atraso
        self._min = min_caracteres
        # reentrante: o callback pode digitar de novo na mesma thread
        self._lock = threading.RLock()
        self._geracao = 0
        self._timer: threading.Timer | None = None

    @property
    def geracao(self) -> int:
        return self._geracao

    def digitar(self, termo: str) -> int:
        with self._lock:
            self._geracao += 1
            geracao = self._geracao
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

            if len(termo.strip()) < self._min:
                self._ao_resultado(termo, None)
            else:
                self._timer = threading.Timer(self._atraso, self.rodar, args=(geracao, termo))
                self._timer.daemon = True
                self._timer.start()
        return geracao

    def rodar(self, geracao: int, termo: str) -> bool:
        """Executa a busca da geração informada; False se o resultado foi descartado."""
        resultado = self._executar(termo)
        # conferência e entrega na mesma seção crítica
        with self._lock:
            if geracao != self._geracao:
                logger.debug("busca_descartada", termo=termo, geracao=geracao, atual=self._geracao)
                return False
            self._ao_resultado(termo, resultado)
            return True

    def cancelar(self) -> None:
        with self._lock:
            self._geracao += 1
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
