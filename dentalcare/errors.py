from __future__ import annotations


class ErroValidacao(ValueError):
    """Falha de validação de formulário: bloqueia o envio, com mensagem por campo."""

    def __init__(self, mensagem: str, campos: dict[str, str] | None = None) -> None:
        super().__init__(mensagem)
        self.mensagem = mensagem
        self.campos = dict(campos or {})


class ErroAutenticacao(Exception):
    pass


class ErroPermissao(PermissionError):
    pass


class NaoEncontrado(LookupError):
    pass


class ErroGateway(RuntimeError):
    """Falha de um serviço externo (ex.: geração de link de pagamento)."""
