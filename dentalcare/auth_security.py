from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

JWT_ALG = "HS256"

# finalidade do token (claim "scope")
ESCOPO_ACESSO = "acesso"
ESCOPO_CONFIRMACAO = "confirmacao"
ESCOPO_REDEFINICAO = "redefinicao"
ESCOPO_CONVITE = "convite"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str | None) -> bool:
    if not password_hash:
        return False
    return pwd_context.verify(password, password_hash)


class TokenCodec:
    """Emite e valida JWTs; construído na inicialização a partir das Settings."""

    def __init__(self, secret: str, expire_minutes: int) -> None:
        self.secret = secret
        self.expire_minutes = expire_minutes

    def create_token(
        self,
        subject: str,
        escopo: str = ESCOPO_ACESSO,
        extra: dict[str, Any] | None = None,
        minutes: int | None = None,
    ) -> str:
        """
        subject: id do usuário.
        Usa datetime com fuso para evitar deslocamentos no timestamp.
        """
        now = datetime.now(timezone.utc)
        expire = now + timedelta(minutes=minutes if minutes is not None else self.expire_minutes)

        payload: dict[str, Any] = {
            "sub": subject,
            "scope": escopo,
            "iat": int(now.timestamp()),
            "exp": int(expire.timestamp()),
        }
        if extra:
            payload.update(extra)

        return jwt.encode(payload, self.secret, algorithm=JWT_ALG)

    def decode_token(self, token: str) -> dict[str, Any]:
        return jwt.decode(token, self.secret, algorithms=[JWT_ALG])

    def get_subject(self, token: str, escopo: str = ESCOPO_ACESSO) -> str | None:
        try:
            payload = self.decode_token(token)
        except JWTError:
            return None
        if payload.get("scope") != escopo:
            return None
        return payload.get("sub")
