"""
Validações de formulário compartilhadas pelos serviços.

Regras locais e baratas: campos obrigatórios, coerção numérica com valor
padrão, formato de CPF/CEP/e-mail e força de senha. Nada aqui consulta o banco.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from .errors import ErroValidacao

CARACTERES_ESPECIAIS = '!@#$%^&*(),.?":{}|<>'

_RE_EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_RE_ESPECIAL = re.compile(r'[!@#$%^&*(),.?":{}|<>]')


@dataclass(frozen=True)
class ForcaSenha:
    min_length: bool
    has_uppercase: bool
    has_number: bool
    has_special_char: bool

    @property
    def valida(self) -> bool:
        return self.min_length and self.has_uppercase and self.has_number and self.has_special_char


def forca_senha(password: str) -> ForcaSenha:
    return ForcaSenha(
        min_length=len(password) >= 8,
        has_uppercase=re.search(r"[A-Z]", password) is not None,
        has_number=re.search(r"\d", password) is not None,
        has_special_char=_RE_ESPECIAL.search(password) is not None,
    )


def senha_valida(password: str) -> bool:
    return forca_senha(password).valida


def exigir_senha_forte(password: str, confirmacao: str | None = None) -> None:
    if confirmacao is not None and password != confirmacao:
        raise ErroValidacao("As senhas não coincidem", {"confirmacao": "As senhas não coincidem"})
    if not senha_valida(password):
        raise ErroValidacao(
            "A senha não atende aos critérios de segurança",
            {"password": f"Mínimo 8 caracteres, com maiúscula, número e um de {CARACTERES_ESPECIAIS}"},
        )


def texto(valor: Any) -> str | None:
    """String aparada; vazio vira None."""
    if valor is None:
        return None
    s = str(valor).strip()
    return s or None


def obrigatorio(valor: Any, campo: str, mensagem: str = "Obrigatório") -> str:
    s = texto(valor)
    if s is None:
        raise ErroValidacao(mensagem, {campo: mensagem})
    return s


def numero(valor: Any, padrao: float = 0.0) -> float:
    """Coerção numérica com fallback (aceita vírgula decimal)."""
    if valor is None or valor == "":
        return padrao
    if isinstance(valor, bool):
        return padrao
    if isinstance(valor, (int, float)):
        return float(valor)
    try:
        return float(str(valor).strip().replace(",", "."))
    except ValueError:
        return padrao


def numero_ou_none(valor: Any) -> float | None:
    if valor is None or (isinstance(valor, str) and not valor.strip()):
        return None
    try:
        return float(str(valor).strip().replace(",", ".")) if isinstance(valor, str) else float(valor)
    except (TypeError, ValueError):
        return None


def inteiro_ou_none(valor: Any) -> int | None:
    n = numero_ou_none(valor)
    return None if n is None else int(n)


def percentual_ou_none(valor: Any, campo: str) -> float | None:
    n = numero_ou_none(valor)
    if n is not None and not 0 <= n <= 100:
        raise ErroValidacao("Percentual deve estar entre 0 e 100", {campo: "Percentual deve estar entre 0 e 100"})
    return n


def so_digitos(valor: Any) -> str:
    return re.sub(r"\D", "", str(valor or ""))


def normalizar_cep(valor: Any) -> str:
    return so_digitos(valor)[:8]


def normalizar_cpf(valor: Any, campo: str = "cpf") -> str | None:
    digitos = so_digitos(valor)
    if not digitos:
        return None
    if len(digitos) != 11:
        raise ErroValidacao("CPF inválido", {campo: "CPF deve ter 11 dígitos"})
    return digitos


def email_ou_none(valor: Any, campo: str = "email") -> str | None:
    s = texto(valor)
    if s is None:
        return None
    if not _RE_EMAIL.match(s):
        raise ErroValidacao("E-mail inválido", {campo: "E-mail inválido"})
    return s.lower()


def data_ou_none(valor: Any, campo: str) -> date | None:
    """Aceita date, ISO (AAAA-MM-DD) ou DD/MM/AAAA."""
    if valor is None or valor == "":
        return None
    if isinstance(valor, datetime):
        return valor.date()
    if isinstance(valor, date):
        return valor
    s = str(valor).strip()
    for fmt in ("%Y-%m-%d", "%d/%m/%Y"):
        try:
            return datetime.strptime(s, fmt).date()
        except ValueError:
            continue
    raise ErroValidacao("Data inválida", {campo: "Data inválida"})


def idade(nascimento: date | None, hoje: date | None = None) -> int:
    if nascimento is None:
        return 0
    hoje = hoje or date.today()
    anos = hoje.year - nascimento.year
    if (hoje.month, hoje.day) < (nascimento.month, nascimento.day):
        anos -= 1
    return anos
