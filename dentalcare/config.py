from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Banco SQLite em arquivo na raiz do projeto (ao lado do streamlit_app.py)
DB_PATH = Path(__file__).resolve().parents[1] / "dentalcare.sqlite"


@dataclass(frozen=True)
class Settings:
    database_url: str
    jwt_secret: str
    jwt_expire_minutes: int
    fuso_horario: str
    link_pagamento_url: str | None
    link_pagamento_api_key: str | None
    link_pagamento_timeout: float
    cep_timeout: float
    log_level: str
    debug: bool


def _flag(valor: str) -> bool:
    return valor.strip().lower() in {"1", "true", "yes", "sim", "on"}


def load_settings() -> Settings:
    """Lê as configurações do ambiente (e do arquivo .env, se existir)."""
    return Settings(
        database_url=os.getenv("DATABASE_URL", f"sqlite:///{DB_PATH}"),
        # Em produção: defina via variável de ambiente
        jwt_secret=os.getenv("JWT_SECRET", "CHANGE_ME_DEV_SECRET"),
        jwt_expire_minutes=int(os.getenv("JWT_EXPIRE_MINUTES", "60")),
        fuso_horario=os.getenv("FUSO_HORARIO", "America/Sao_Paulo"),
        link_pagamento_url=(os.getenv("LINK_PAGAMENTO_URL") or "").strip() or None,
        link_pagamento_api_key=(os.getenv("LINK_PAGAMENTO_API_KEY") or "").strip() or None,
        link_pagamento_timeout=float(os.getenv("LINK_PAGAMENTO_TIMEOUT", "10")),
        cep_timeout=float(os.getenv("CEP_TIMEOUT", "6")),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        debug=_flag(os.getenv("DEBUG", "false")),
    )
