from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from .auth_models import PermissoesUsuario, StatusUsuario, TipoUsuario, Usuario
from .auth_security import (
    ESCOPO_CONFIRMACAO,
    ESCOPO_CONVITE,
    ESCOPO_REDEFINICAO,
    TokenCodec,
    hash_password,
    verify_password,
)
from .db import Database
from .errors import ErroAutenticacao, ErroValidacao, NaoEncontrado
from .logging_config import get_logger
from .models import Clinica
from .permissoes import Perfil, Permissoes, perfil_de_usuario
from .validacao import email_ou_none, exigir_senha_forte, obrigatorio, so_digitos, texto

logger = get_logger(__name__)

# validade dos tokens de uso único (minutos)
MINUTOS_CONFIRMACAO = 60 * 24
MINUTOS_REDEFINICAO = 60
MINUTOS_CONVITE = 60 * 24 * 7

CAMPOS_PERFIL = ("nome", "telefone", "cpf_cnpj", "rg", "cro", "tipo_pessoa", "endereco", "foto_url")


@dataclass(frozen=True)
class ResultadoCadastro:
    clinica_id: str
    usuario_id: str
    token_confirmacao: str


def _por_email(s: Session, email: str) -> Usuario | None:
    return s.execute(
        select(Usuario).options(selectinload(Usuario.permissoes)).where(Usuario.email == email)
    ).scalar_one_or_none()


def _email_obrigatorio(email: str | None) -> str:
    valor = email_ou_none(email)
    if valor is None:
        raise ErroValidacao("E-mail obrigatório", {"email": "Obrigatório"})
    return valor


def usuario_flat(u: Usuario) -> dict[str, Any]:
    return {
        "id": u.id,
        "clinica_id": u.clinica_id,
        "nome": u.nome,
        "email": u.email,
        "tipo": u.tipo.value,
        "status": u.status.value,
        "cpf_cnpj": u.cpf_cnpj,
        "rg": u.rg,
        "cro": u.cro,
        "telefone": u.telefone,
        "tipo_pessoa": u.tipo_pessoa,
        "endereco": u.endereco,
        "foto_url": u.foto_url,
        "created_at": u.created_at.isoformat() if u.created_at else None,
    }


# =========================
# Cadastro
# =========================
def cadastrar(
    db: Database,
    tokens: TokenCodec,
    nome_clinica: str,
    nome: str,
    email: str,
    password: str,
    confirmacao: str,
    **dados: Any,
) -> ResultadoCadastro:
    """
    Cadastro de uma nova clínica:
    - cria Clinica, o usuário master (pendente) e a linha de permissões
    - tudo em uma única transação
    - devolve o token de confirmação de e-mail
    """
    nome_clinica = obrigatorio(nome_clinica, "nome_clinica")
    nome = obrigatorio(nome, "nome")
    email = _email_obrigatorio(email)
    exigir_senha_forte(password, confirmacao)

    with db.session() as s:
        if _por_email(s, email) is not None:
            raise ErroValidacao("E-mail já cadastrado", {"email": "E-mail já cadastrado"})

        clinica = Clinica(nome=nome_clinica)
        s.add(clinica)
        s.flush()

        u = Usuario(
            clinica_id=clinica.id,
            nome=nome,
            email=email,
            password_hash=hash_password(password),
            tipo=TipoUsuario.MASTER,
            status=StatusUsuario.PENDENTE,
            cpf_cnpj=so_digitos(dados.get("cpf_cnpj")) or None,
            rg=texto(dados.get("rg")),
            cro=texto(dados.get("cro")),
            telefone=texto(dados.get("telefone")),
            tipo_pessoa=texto(dados.get("tipo_pessoa")),
            endereco=dados.get("endereco") or None,
        )
        s.add(u)
        s.flush()

        # master não depende da linha, mas ela existe para manter o esquema uniforme
        linha = PermissoesUsuario(usuario_id=u.id)
        Permissoes.todas().aplicar_em(linha)
        s.add(linha)

        token = tokens.create_token(u.id, escopo=ESCOPO_CONFIRMACAO, minutes=MINUTOS_CONFIRMACAO)
        logger.info("clinica_cadastrada", clinica_id=clinica.id, usuario_id=u.id)
        return ResultadoCadastro(clinica_id=clinica.id, usuario_id=u.id, token_confirmacao=token)


def confirmar_email(db: Database, tokens: TokenCodec, token: str) -> str:
    usuario_id = tokens.get_subject(token, escopo=ESCOPO_CONFIRMACAO)
    if not usuario_id:
        raise ErroAutenticacao("Token de confirmação inválido ou expirado")

    with db.session() as s:
        u = s.get(Usuario, usuario_id)
        if not u:
            raise ErroAutenticacao("Token de confirmação inválido ou expirado")
        if u.status is StatusUsuario.PENDENTE:
            u.status = StatusUsuario.ATIVO
            logger.info("email_confirmado", usuario_id=u.id)
        return u.id


# =========================
# Login
# =========================
def autenticar(db: Database, email: str, password: str) -> Perfil:
    email = (email or "").strip().lower()
    with db.session() as s:
        u = _por_email(s, email)
        if not u or not verify_password(password, u.password_hash):
            logger.info("login_recusado", email=email)
            raise ErroAutenticacao("E-mail ou senha inválidos")
        if u.status is StatusUsuario.PENDENTE:
            raise ErroAutenticacao("E-mail não confirmado")
        if u.status is StatusUsuario.INATIVO:
            raise ErroAutenticacao("Usuário inativo")
        return perfil_de_usuario(u)


def resolver_perfil(db: Database, usuario_id: str) -> Perfil | None:
    """Usuário → perfil; a linha de permissões só importa para quem não é master."""
    with db.session() as s:
        u = s.get(Usuario, usuario_id)
        if not u:
            return None
        # master: sem consulta à linha de permissões; demais: carga lazy dentro da sessão
        return perfil_de_usuario(u)


# =========================
# Redefinição de senha
# =========================
def solicitar_redefinicao(db: Database, tokens: TokenCodec, email: str) -> str | None:
    email = (email or "").strip().lower()
    with db.session() as s:
        u = _por_email(s, email)
        if not u or u.status is StatusUsuario.INATIVO:
            logger.info("redefinicao_ignorada", email=email)
            return None
        logger.info("redefinicao_solicitada", usuario_id=u.id)
        return tokens.create_token(u.id, escopo=ESCOPO_REDEFINICAO, minutes=MINUTOS_REDEFINICAO)


def redefinir_senha(db: Database, tokens: TokenCodec, token: str, password: str, confirmacao: str) -> None:
    usuario_id = tokens.get_subject(token, escopo=ESCOPO_REDEFINICAO)
    if not usuario_id:
        raise ErroAutenticacao("Token de redefinição inválido ou expirado")
    exigir_senha_forte(password, confirmacao)

    with db.session() as s:
        u = s.get(Usuario, usuario_id)
        if not u:
            raise ErroAutenticacao("Token de redefinição inválido ou expirado")
        u.password_hash = hash_password(password)
        logger.info("senha_redefinida", usuario_id=u.id)


# =========================
# Convite
# =========================
def criar_token_convite(tokens: TokenCodec, usuario_id: str) -> str:
    return tokens.create_token(usuario_id, escopo=ESCOPO_CONVITE, minutes=MINUTOS_CONVITE)


def aceitar_convite(db: Database, tokens: TokenCodec, token: str, password: str, confirmacao: str) -> str:
    """Define a senha do convidado e ativa a conta."""
    usuario_id = tokens.get_subject(token, escopo=ESCOPO_CONVITE)
    if not usuario_id:
        raise ErroAutenticacao("Convite inválido ou expirado")
    exigir_senha_forte(password, confirmacao)

    with db.session() as s:
        u = s.get(Usuario, usuario_id)
        if not u or u.status is not StatusUsuario.PENDENTE:
            raise ErroAutenticacao("Convite inválido ou expirado")
        u.password_hash = hash_password(password)
        u.status = StatusUsuario.ATIVO
        logger.info("convite_aceito", usuario_id=u.id, clinica_id=u.clinica_id)
        return u.id


# =========================
# Perfil
# =========================
def dados_usuario(db: Database, usuario_id: str) -> dict[str, Any]:
    with db.session() as s:
        u = s.get(Usuario, usuario_id)
        if not u:
            raise NaoEncontrado("Usuário não encontrado")
        return usuario_flat(u)


def atualizar_perfil(db: Database, perfil: Perfil, dados: dict[str, Any]) -> dict[str, Any]:
    """Atualiza os dados pessoais do próprio usuário (tipo, status e e-mail não mudam aqui)."""
    with db.session() as s:
        u = s.get(Usuario, perfil.usuario_id)
        if not u:
            raise NaoEncontrado("Usuário não encontrado")

        for campo in CAMPOS_PERFIL:
            if campo not in dados:
                continue
            valor = dados[campo]
            if campo == "nome":
                u.nome = obrigatorio(valor, "nome")
            elif campo == "cpf_cnpj":
                u.cpf_cnpj = so_digitos(valor) or None
            elif campo == "endereco":
                u.endereco = valor or None
            else:
                setattr(u, campo, texto(valor))

        s.flush()
        logger.info("perfil_atualizado", usuario_id=u.id)
        return usuario_flat(u)
