"""
Administração dos usuários da clínica: listar, convidar, alterar
permissões, alterar status e remover.

Toda decisão de "pode ou não pode" passa pela `Autorizacao`.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from .auth_models import PermissoesUsuario, StatusUsuario, TipoUsuario, Usuario
from .auth_security import TokenCodec
from .auth_service import criar_token_convite, usuario_flat
from .db import Database
from .errors import ErroPermissao, ErroValidacao, NaoEncontrado
from .logging_config import get_logger
from .permissoes import ADMINISTRATIVAS, CAPACIDADES, Autorizacao, Capacidade, Perfil, Permissoes
from .validacao import email_ou_none, obrigatorio

logger = get_logger(__name__)

# convite sem permissões explícitas: só o dashboard
PERMISSOES_PADRAO_CONVITE = Permissoes(dashboard=True)


@dataclass(frozen=True)
class ResultadoConvite:
    usuario_id: str
    token_convite: str
    permissoes: dict[str, bool]


def _flat_com_permissoes(u: Usuario) -> dict[str, Any]:
    d = usuario_flat(u)
    if u.tipo is TipoUsuario.MASTER:
        d["permissoes"] = Permissoes.todas().como_dict()
    else:
        d["permissoes"] = Permissoes.de_linha(u.permissoes).como_dict()
    return d


def _alvo(s: Session, perfil: Perfil, usuario_id: str) -> Usuario:
    u = s.execute(
        select(Usuario)
        .options(selectinload(Usuario.permissoes))
        .where(Usuario.id == usuario_id, Usuario.clinica_id == perfil.clinica_id)
    ).scalar_one_or_none()
    if not u:
        raise NaoEncontrado("Usuário não encontrado")
    return u


def listar(db: Database, autorizacao: Autorizacao, perfil: Perfil) -> list[dict[str, Any]]:
    if not (
        autorizacao.pode(perfil, Capacidade.CRIAR_USUARIOS)
        or autorizacao.pode(perfil, Capacidade.GERENCIAR_PERMISSOES)
    ):
        raise ErroPermissao("Sem permissão para administrar usuários")

    with db.session() as s:
        rows = s.scalars(
            select(Usuario)
            .options(selectinload(Usuario.permissoes))
            .where(Usuario.clinica_id == perfil.clinica_id)
            .order_by(Usuario.created_at.desc())
        )
        return [_flat_com_permissoes(u) for u in rows]


def convidar(
    db: Database,
    tokens: TokenCodec,
    autorizacao: Autorizacao,
    perfil: Perfil,
    nome: str,
    email: str,
    tipo: TipoUsuario,
    permissoes: Mapping[str, bool] | None = None,
) -> ResultadoConvite:
    """
    Convite de um novo usuário:
    - exige criar_usuarios
    - master convida gerente ou usuário; gerente só usuário
    - o que o convidante não pode conceder é descartado (e registrado no log)
    """
    autorizacao.exigir(perfil, Capacidade.CRIAR_USUARIOS)
    if tipo not in autorizacao.tipos_convidaveis(perfil):
        raise ErroPermissao(f"Sem permissão para convidar usuários do tipo {tipo.value}")

    nome = obrigatorio(nome, "nome")
    email_norm = email_ou_none(email)
    if email_norm is None:
        raise ErroValidacao("E-mail obrigatório", {"email": "Obrigatório"})

    solicitadas = Permissoes.de_mapa(permissoes, padrao=PERMISSOES_PADRAO_CONVITE)
    concedidas = autorizacao.conceder(perfil, solicitadas, tipo)
    descartadas = [c.value for c in solicitadas.ativas() if not concedidas.tem(c)]
    if descartadas:
        logger.warning("permissoes_descartadas", convidante=perfil.usuario_id, capacidades=descartadas)

    with db.session() as s:
        existe = s.execute(select(Usuario.id).where(Usuario.email == email_norm)).first()
        if existe:
            raise ErroValidacao("E-mail já cadastrado", {"email": "E-mail já cadastrado"})

        u = Usuario(
            clinica_id=perfil.clinica_id,
            nome=nome,
            email=email_norm,
            password_hash=None,
            tipo=tipo,
            status=StatusUsuario.PENDENTE,
        )
        s.add(u)
        s.flush()

        linha = PermissoesUsuario(usuario_id=u.id)
        concedidas.aplicar_em(linha)
        s.add(linha)

        token = criar_token_convite(tokens, u.id)
        logger.info("usuario_convidado", clinica_id=perfil.clinica_id, usuario_id=u.id, tipo=tipo.value)
        return ResultadoConvite(usuario_id=u.id, token_convite=token, permissoes=concedidas.como_dict())


def atualizar_permissoes(
    db: Database,
    autorizacao: Autorizacao,
    perfil: Perfil,
    usuario_id: str,
    permissoes: Mapping[str, bool],
) -> dict[str, Any]:
    """Só as capacidades que o editor pode conceder mudam; as demais ficam como estão."""
    with db.session() as s:
        u = _alvo(s, perfil, usuario_id)
        if not autorizacao.pode_gerenciar_permissoes_de(perfil, u):
            raise ErroPermissao("Sem permissão para alterar as permissões deste usuário")

        atuais = Permissoes.de_linha(u.permissoes)
        permitidas = autorizacao.concessiveis(perfil)
        if u.tipo is not TipoUsuario.GERENTE:
            permitidas = permitidas.sem(ADMINISTRATIVAS)

        novos: dict[str, bool] = {}
        descartadas: list[str] = []
        for c in CAPACIDADES:
            if permissoes.get(c.value) is None:
                continue
            if permitidas.tem(c):
                novos[c.value] = bool(permissoes[c.value])
            elif bool(permissoes[c.value]) != atuais.tem(c):
                descartadas.append(c.value)
        if descartadas:
            logger.warning("permissoes_descartadas", editor=perfil.usuario_id, usuario_id=u.id, capacidades=descartadas)

        resultado = Permissoes.de_mapa(novos, padrao=atuais)
        if u.permissoes is None:
            u.permissoes = PermissoesUsuario(usuario_id=u.id)
        resultado.aplicar_em(u.permissoes)
        s.flush()

        logger.info("permissoes_atualizadas", clinica_id=perfil.clinica_id, usuario_id=u.id)
        return _flat_com_permissoes(u)


def alterar_status(
    db: Database, autorizacao: Autorizacao, perfil: Perfil, usuario_id: str, status: StatusUsuario
) -> dict[str, Any]:
    with db.session() as s:
        u = _alvo(s, perfil, usuario_id)
        if not autorizacao.pode_remover(perfil, u):
            raise ErroPermissao("Apenas o master pode alterar o status de outros usuários")
        u.status = status
        s.flush()
        logger.info("status_alterado", clinica_id=perfil.clinica_id, usuario_id=u.id, status=status.value)
        return _flat_com_permissoes(u)


def remover(db: Database, autorizacao: Autorizacao, perfil: Perfil, usuario_id: str) -> None:
    with db.session() as s:
        u = _alvo(s, perfil, usuario_id)
        if not autorizacao.pode_remover(perfil, u):
            raise ErroPermissao("Apenas o master pode remover outros usuários")
        s.delete(u)
        logger.info("usuario_removido", clinica_id=perfil.clinica_id, usuario_id=usuario_id)
