"""
Configuração de logging do DentalCare.
"""
from __future__ import annotations

import logging
import sys

import structlog
from structlog.stdlib import LoggerFactory

from .config import Settings

_CONFIGURADO = False


def configure_logging(settings: Settings) -> None:
    """Configura structlog + logging padrão (idempotente)."""
    global _CONFIGURADO
    if _CONFIGURADO:
        return

    nivel = logging.DEBUG if settings.debug else logging.getLevelName(settings.log_level.upper())
    if not isinstance(nivel, int):
        nivel = logging.INFO

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", level=nivel, stream=sys.stdout)

    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if settings.debug else logging.WARNING)
    logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)
    _CONFIGURADO = True


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
