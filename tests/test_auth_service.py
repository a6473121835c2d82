import pytest
from sqlalchemy import event

from dentalcare import auth_service
from dentalcare.auth_models import StatusUsuario, TipoUsuario, Usuario
from dentalcare.auth_security import ESCOPO_ACESSO, ESCOPO_CONFIRMACAO
from dentalcare.errors import ErroAutenticacao, ErroValidacao
from dentalcare.permissoes import Permissoes

from .conftest import SENHA, criar_usuario


def _cadastrar(db, tokens, email="dono@clinica.test"):
    return auth_service.cadastrar(
        db, tokens, nome_clinica="Sorriso", nome="Dono", email=email, password=SENHA, confirmacao=SENHA
    )


def test_cadastro_cria_master_pendente(db, tokens):
    r = _cadastrar(db, tokens)
    with db.session() as s:
        u = s.get(Usuario, r.usuario_id)
        assert u.clinica_id == r.clinica_id
        assert u.tipo is TipoUsuario.MASTER
        assert u.status is StatusUsuario.PENDENTE
        assert Permissoes.de_linha(u.permissoes) == Permissoes.todas()
    assert tokens.get_subject(r.token_confirmacao, escopo=ESCOPO_CONFIRMACAO) == r.usuario_id


def test_cadastro_email_duplicado(db, tokens):
    _cadastrar(db, tokens)
    with pytest.raises(ErroValidacao) as exc:
        _cadastrar(db, tokens, email="DONO@clinica.test")
    assert exc.value.campos["email"] == "E-mail já cadastrado"


def test_cadastro_senha_fraca_nao_grava_nada(db, tokens):
    with pytest.raises(ErroValidacao):
        auth_service.cadastrar(
            db, tokens, nome_clinica="X", nome="Y", email="y@x.test", password="abc12345", confirmacao="abc12345"
        )
    with db.session() as s:
        assert s.query(Usuario).count() == 0


def test_login_antes_e_depois_da_confirmacao(db, tokens):
    r = _cadastrar(db, tokens)
    with pytest.raises(ErroAutenticacao, match="E-mail não confirmado"):
        auth_service.autenticar(db, "dono@clinica.test", SENHA)

    auth_service.confirmar_email(db, tokens, r.token_confirmacao)
    perfil = auth_service.autenticar(db, " Dono@Clinica.test ", SENHA)
    assert perfil.usuario_id == r.usuario_id
    assert perfil.is_master


def test_login_senha_errada(db, tokens):
    r = _cadastrar(db, tokens)
    auth_service.confirmar_email(db, tokens, r.token_confirmacao)
    with pytest.raises(ErroAutenticacao, match="E-mail ou senha inválidos"):
        auth_service.autenticar(db, "dono@clinica.test", "Errada1!")


def test_login_usuario_inativo(db, clinica_id):
    criar_usuario(db, clinica_id, "inativo@clinica.test", status=StatusUsuario.INATIVO)
    with pytest.raises(ErroAutenticacao, match="Usuário inativo"):
        auth_service.autenticar(db, "inativo@clinica.test", SENHA)


def test_token_de_acesso_nao_confirma_email(db, tokens):
    r = _cadastrar(db, tokens)
    acesso = tokens.create_token(r.usuario_id, escopo=ESCOPO_ACESSO)
    with pytest.raises(ErroAutenticacao):
        auth_service.confirmar_email(db, tokens, acesso)


def test_redefinicao_de_senha(db, tokens, master):
    token = auth_service.solicitar_redefinicao(db, tokens, master.email)
    assert token
    auth_service.redefinir_senha(db, tokens, token, "Nova@Senha1", "Nova@Senha1")
    assert auth_service.autenticar(db, master.email, "Nova@Senha1").usuario_id == master.usuario_id


def test_redefinicao_email_desconhecido(db, tokens):
    assert auth_service.solicitar_redefinicao(db, tokens, "ninguem@x.test") is None


def test_aceitar_convite(db, tokens, clinica_id):
    convidado = criar_usuario(db, clinica_id, "novo@clinica.test", status=StatusUsuario.PENDENTE, senha=None)
    token = auth_service.criar_token_convite(tokens, convidado.usuario_id)
    auth_service.aceitar_convite(db, tokens, token, SENHA, SENHA)
    assert auth_service.autenticar(db, "novo@clinica.test", SENHA).usuario_id == convidado.usuario_id

    # convite já usado
    with pytest.raises(ErroAutenticacao):
        auth_service.aceitar_convite(db, tokens, token, SENHA, SENHA)


def test_atualizar_perfil(db, master):
    dados = auth_service.atualizar_perfil(db, master, {"nome": "Dra. Master", "cpf_cnpj": "123.456.789-09", "cro": " SP-1 "})
    assert dados["nome"] == "Dra. Master"
    assert dados["cpf_cnpj"] == "12345678909"
    assert dados["cro"] == "SP-1"
    assert dados["email"] == master.email


def _consultas(db):
    sqls = []
    event.listen(db.engine, "before_cursor_execute", lambda conn, cur, sql, *a: sqls.append(sql))
    return sqls


def test_resolver_perfil_so_le_permissoes_de_quem_nao_e_master(db, clinica_id, master):
    comum = criar_usuario(db, clinica_id, "comum@clinica.test", permissoes=Permissoes(agenda=True))
    sqls = _consultas(db)

    perfil = auth_service.resolver_perfil(db, master.usuario_id)
    assert perfil.permissoes == Permissoes.todas()
    assert not any("permissoes_usuario" in sql for sql in sqls)

    perfil = auth_service.resolver_perfil(db, comum.usuario_id)
    assert perfil.permissoes == Permissoes(agenda=True)
    assert any("permissoes_usuario" in sql for sql in sqls)

    assert auth_service.resolver_perfil(db, "inexistente") is None
