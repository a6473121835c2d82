import pytest

from dentalcare import usuarios
from dentalcare.auth_models import StatusUsuario, TipoUsuario, Usuario
from dentalcare.errors import ErroPermissao, ErroValidacao
from dentalcare.permissoes import Permissoes

from .conftest import criar_clinica, criar_usuario


@pytest.fixture
def gerente(db, clinica_id):
    return criar_usuario(
        db,
        clinica_id,
        "gerente@clinica.test",
        tipo=TipoUsuario.GERENTE,
        permissoes=Permissoes(dashboard=True, agenda=True, pacientes=True, criar_usuarios=True, gerenciar_permissoes=True),
    )


def test_convite_do_gerente_descarta_o_que_ele_nao_tem(db, tokens, autorizacao, gerente):
    r = usuarios.convidar(
        db, tokens, autorizacao, gerente, "Recepção", "recepcao@clinica.test", TipoUsuario.USUARIO,
        {"financeiro": True, "agenda": True},
    )
    assert r.permissoes["financeiro"] is False
    assert r.permissoes["agenda"] is True
    # sem valor explícito, fica o padrão do convite
    assert r.permissoes["dashboard"] is True

    with db.session() as s:
        u = s.get(Usuario, r.usuario_id)
        assert u.status is StatusUsuario.PENDENTE
        assert u.password_hash is None
        assert u.permissoes.financeiro is False


def test_gerente_nao_convida_gerente(db, tokens, autorizacao, gerente):
    with pytest.raises(ErroPermissao):
        usuarios.convidar(db, tokens, autorizacao, gerente, "Outro", "outro@clinica.test", TipoUsuario.GERENTE)


def test_usuario_sem_capacidade_nao_convida(db, tokens, autorizacao, clinica_id):
    comum = criar_usuario(db, clinica_id, "comum@clinica.test", permissoes=Permissoes(dashboard=True))
    with pytest.raises(ErroPermissao):
        usuarios.convidar(db, tokens, autorizacao, comum, "X", "x@clinica.test", TipoUsuario.USUARIO)
    with pytest.raises(ErroPermissao):
        usuarios.listar(db, autorizacao, comum)


def test_convite_email_repetido(db, tokens, autorizacao, master):
    with pytest.raises(ErroValidacao):
        usuarios.convidar(db, tokens, autorizacao, master, "Dup", master.email, TipoUsuario.USUARIO)


def test_listar_mostra_so_a_propria_clinica(db, autorizacao, master, gerente):
    outra = criar_clinica(db, "Outra")
    criar_usuario(db, outra, "alheio@outra.test")
    emails = {u["email"] for u in usuarios.listar(db, autorizacao, master)}
    assert emails == {master.email, gerente.email}


def test_atualizar_permissoes_mantem_o_que_o_editor_nao_controla(db, autorizacao, master, gerente, clinica_id):
    alvo = criar_usuario(db, clinica_id, "alvo@clinica.test", permissoes=Permissoes(dashboard=True, financeiro=True))
    d = usuarios.atualizar_permissoes(
        db, autorizacao, gerente, alvo.usuario_id, {"financeiro": False, "agenda": True, "criar_usuarios": True}
    )
    # gerente não tem financeiro: o valor atual fica
    assert d["permissoes"]["financeiro"] is True
    assert d["permissoes"]["agenda"] is True
    assert d["permissoes"]["criar_usuarios"] is False


def test_ninguem_edita_as_proprias_permissoes(db, autorizacao, gerente):
    with pytest.raises(ErroPermissao):
        usuarios.atualizar_permissoes(db, autorizacao, gerente, gerente.usuario_id, {"financeiro": True})


def test_status_e_remocao_so_pelo_master(db, autorizacao, master, gerente, clinica_id):
    alvo = criar_usuario(db, clinica_id, "alvo@clinica.test")
    with pytest.raises(ErroPermissao):
        usuarios.alterar_status(db, autorizacao, gerente, alvo.usuario_id, StatusUsuario.INATIVO)

    d = usuarios.alterar_status(db, autorizacao, master, alvo.usuario_id, StatusUsuario.INATIVO)
    assert d["status"] == "inativo"

    with pytest.raises(ErroPermissao):
        usuarios.remover(db, autorizacao, master, master.usuario_id)

    usuarios.remover(db, autorizacao, master, alvo.usuario_id)
    with db.session() as s:
        assert s.get(Usuario, alvo.usuario_id) is None
