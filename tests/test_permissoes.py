from dentalcare.auth_models import StatusUsuario, TipoUsuario, Usuario
from dentalcare.permissoes import (
    ADMINISTRATIVAS,
    CAPACIDADES,
    Autorizacao,
    Capacidade,
    Perfil,
    Permissoes,
    perfil_de_usuario,
)


def _perfil(tipo=TipoUsuario.USUARIO, permissoes=None, status=StatusUsuario.ATIVO, uid="u1", clinica="c1"):
    return Perfil(
        usuario_id=uid,
        clinica_id=clinica,
        nome="Teste",
        email=f"{uid}@x.test",
        tipo=tipo,
        status=status,
        permissoes=permissoes or Permissoes.nenhuma(),
    )


def test_master_tem_todas_sem_olhar_a_linha():
    u = Usuario(id="m", clinica_id="c1", nome="M", email="m@x.test", tipo=TipoUsuario.MASTER, status=StatusUsuario.ATIVO)
    perfil = perfil_de_usuario(u)
    assert perfil.permissoes == Permissoes.todas()
    assert perfil.is_master


def test_usuario_sem_linha_nao_tem_nada():
    u = Usuario(id="u", clinica_id="c1", nome="U", email="u@x.test", tipo=TipoUsuario.USUARIO, status=StatusUsuario.ATIVO)
    assert perfil_de_usuario(u).permissoes.ativas() == []


def test_de_mapa_ignora_chaves_desconhecidas():
    p = Permissoes.de_mapa({"agenda": True, "inexistente": True}, padrao=Permissoes(dashboard=True))
    assert p.ativas() == [Capacidade.DASHBOARD, Capacidade.AGENDA]


def test_menu_segue_a_ordem_das_capacidades():
    perfil = _perfil(permissoes=Permissoes(estoque=True, dashboard=True))
    assert Autorizacao().menu(perfil) == ["dashboard", "estoque"]


def test_usuario_inativo_nao_pode_nada():
    perfil = _perfil(permissoes=Permissoes.todas(), status=StatusUsuario.INATIVO)
    auth = Autorizacao()
    assert not any(auth.pode(perfil, c) for c in CAPACIDADES)
    assert auth.menu(perfil) == []


def test_gerente_nao_concede_o_que_nao_tem():
    gerente = _perfil(tipo=TipoUsuario.GERENTE, permissoes=Permissoes(dashboard=True, agenda=True, criar_usuarios=True))
    solicitadas = Permissoes(dashboard=True, financeiro=True, agenda=True)
    concedidas = Autorizacao().conceder(gerente, solicitadas, TipoUsuario.USUARIO)
    assert concedidas.financeiro is False
    assert concedidas.agenda is True


def test_administrativas_so_para_gerente():
    master = _perfil(tipo=TipoUsuario.MASTER, permissoes=Permissoes.todas())
    auth = Autorizacao()
    para_usuario = auth.conceder(master, Permissoes.todas(), TipoUsuario.USUARIO)
    para_gerente = auth.conceder(master, Permissoes.todas(), TipoUsuario.GERENTE)
    assert not any(para_usuario.tem(c) for c in ADMINISTRATIVAS)
    assert all(para_gerente.tem(c) for c in ADMINISTRATIVAS)


def test_gerente_nunca_concede_administrativas():
    gerente = _perfil(tipo=TipoUsuario.GERENTE, permissoes=Permissoes.todas())
    assert not any(Autorizacao().concessiveis(gerente).tem(c) for c in ADMINISTRATIVAS)


def test_tipos_convidaveis():
    auth = Autorizacao()
    master = _perfil(tipo=TipoUsuario.MASTER, permissoes=Permissoes.todas())
    gerente = _perfil(tipo=TipoUsuario.GERENTE, permissoes=Permissoes(criar_usuarios=True))
    usuario = _perfil(permissoes=Permissoes(criar_usuarios=True))
    assert auth.tipos_convidaveis(master) == [TipoUsuario.GERENTE, TipoUsuario.USUARIO]
    assert auth.tipos_convidaveis(gerente) == [TipoUsuario.USUARIO]
    assert auth.tipos_convidaveis(usuario) == []


def test_pode_remover_so_master_e_nunca_a_si_mesmo():
    auth = Autorizacao()
    master = _perfil(tipo=TipoUsuario.MASTER, permissoes=Permissoes.todas(), uid="m")
    gerente = _perfil(tipo=TipoUsuario.GERENTE, permissoes=Permissoes.todas(), uid="g")
    alvo = Usuario(id="x", clinica_id="c1", tipo=TipoUsuario.USUARIO)
    outra_clinica = Usuario(id="y", clinica_id="c2", tipo=TipoUsuario.USUARIO)
    proprio = Usuario(id="m", clinica_id="c1", tipo=TipoUsuario.MASTER)

    assert auth.pode_remover(master, alvo)
    assert not auth.pode_remover(master, outra_clinica)
    assert not auth.pode_remover(master, proprio)
    assert not auth.pode_remover(gerente, alvo)


def test_permissoes_de_master_nao_sao_editaveis():
    auth = Autorizacao()
    gerente = _perfil(tipo=TipoUsuario.GERENTE, permissoes=Permissoes(gerenciar_permissoes=True), uid="g")
    alvo_master = Usuario(id="m", clinica_id="c1", tipo=TipoUsuario.MASTER)
    alvo_usuario = Usuario(id="u", clinica_id="c1", tipo=TipoUsuario.USUARIO)
    assert not auth.pode_gerenciar_permissoes_de(gerente, alvo_master)
    assert auth.pode_gerenciar_permissoes_de(gerente, alvo_usuario)
