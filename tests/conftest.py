from __future__ import annotations

import pytest

from dentalcare.auth_models import PermissoesUsuario, StatusUsuario, TipoUsuario, Usuario
from dentalcare.auth_security import TokenCodec, hash_password
from dentalcare.db import Database
from dentalcare.models import Clinica
from dentalcare.permissoes import Autorizacao, Permissoes, perfil_de_usuario

SENHA = "Abcdef1!"


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def db(tmp_path):
    database = Database(f"sqlite:///{tmp_path / 'test.sqlite'}")
    database.create_all()
    yield database
    database.dispose()


@pytest.fixture
def tokens():
    return TokenCodec("segredo-de-teste", 60)


@pytest.fixture
def autorizacao():
    return Autorizacao()


def criar_clinica(db: Database, nome: str = "Clínica Teste") -> str:
    with db.session() as s:
        c = Clinica(nome=nome)
        s.add(c)
        s.flush()
        return c.id


def criar_usuario(
    db: Database,
    clinica_id: str,
    email: str,
    tipo: TipoUsuario = TipoUsuario.USUARIO,
    permissoes: Permissoes | None = None,
    status: StatusUsuario = StatusUsuario.ATIVO,
    senha: str | None = SENHA,
):
    """Cria o usuário direto no banco e devolve o Perfil dele."""
    with db.session() as s:
        u = Usuario(
            clinica_id=clinica_id,
            nome=email.split("@")[0].title(),
            email=email,
            password_hash=hash_password(senha) if senha else None,
            tipo=tipo,
            status=status,
        )
        s.add(u)
        s.flush()
        linha = PermissoesUsuario(usuario_id=u.id)
        (permissoes or Permissoes.nenhuma()).aplicar_em(linha)
        s.add(linha)
        s.flush()
        u.permissoes = linha
        return perfil_de_usuario(u)


@pytest.fixture
def clinica_id(db):
    return criar_clinica(db)


@pytest.fixture
def master(db, clinica_id):
    return criar_usuario(db, clinica_id, "master@clinica.test", tipo=TipoUsuario.MASTER, permissoes=Permissoes.todas())
