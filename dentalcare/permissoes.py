"""
Capacidades, perfis e o ponto único de decisão de autorização.

O mesmo objeto `Autorizacao` responde tanto "o que a interface mostra"
(menu) quanto "o que a API permite" (dependência `exigir` e serviços de
usuários), para que as duas coisas não divirjam.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, fields, replace
from typing import Iterable, Mapping

from .auth_models import PermissoesUsuario, StatusUsuario, TipoUsuario, Usuario
from .errors import ErroPermissao


class Capacidade(str, enum.Enum):
    DASHBOARD = "dashboard"
    PACIENTES = "pacientes"
    PROFISSIONAIS = "profissionais"
    AGENDA = "agenda"
    FINANCEIRO = "financeiro"
    ESTOQUE = "estoque"
    CATALOGO_SERVICOS = "catalogo_servicos"
    CONFIGURACOES = "configuracoes"
    LUZIA = "luzia"
    CRIAR_USUARIOS = "criar_usuarios"
    GERENCIAR_PERMISSOES = "gerenciar_permissoes"


# ordem fixa usada em toda iteração sobre capacidades
CAPACIDADES: tuple[Capacidade, ...] = tuple(Capacidade)

# capacidades administrativas: só gerentes podem recebê-las, e só o master as concede
ADMINISTRATIVAS: frozenset[Capacidade] = frozenset({Capacidade.CRIAR_USUARIOS, Capacidade.GERENCIAR_PERMISSOES})


@dataclass(frozen=True)
class Permissoes:
    dashboard: bool = False
    pacientes: bool = False
    profissionais: bool = False
    agenda: bool = False
    financeiro: bool = False
    estoque: bool = False
    catalogo_servicos: bool = False
    configuracoes: bool = False
    luzia: bool = False
    criar_usuarios: bool = False
    gerenciar_permissoes: bool = False

    @classmethod
    def todas(cls) -> "Permissoes":
        return cls(**{c.value: True for c in CAPACIDADES})

    @classmethod
    def nenhuma(cls) -> "Permissoes":
        return cls()

    @classmethod
    def de_linha(cls, linha: PermissoesUsuario | None) -> "Permissoes":
        if linha is None:
            return cls.nenhuma()
        return cls(**{c.value: bool(getattr(linha, c.value)) for c in CAPACIDADES})

    @classmethod
    def de_mapa(cls, mapa: Mapping[str, bool] | None, padrao: "Permissoes | None" = None) -> "Permissoes":
        """Chaves desconhecidas são ignoradas; ausentes ficam com o valor de `padrao`."""
        base = padrao or cls.nenhuma()
        if not mapa:
            return base
        valores = {c.value: bool(mapa[c.value]) for c in CAPACIDADES if mapa.get(c.value) is not None}
        return replace(base, **valores)

    def tem(self, capacidade: Capacidade) -> bool:
        return bool(getattr(self, capacidade.value))

    def ativas(self) -> list[Capacidade]:
        return [c for c in CAPACIDADES if self.tem(c)]

    def intersecao(self, outras: "Permissoes") -> "Permissoes":
        return Permissoes(**{c.value: self.tem(c) and outras.tem(c) for c in CAPACIDADES})

    def sem(self, capacidades: Iterable[Capacidade]) -> "Permissoes":
        return replace(self, **{c.value: False for c in capacidades})

    def como_dict(self) -> dict[str, bool]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def aplicar_em(self, linha: PermissoesUsuario) -> None:
        for c in CAPACIDADES:
            setattr(linha, c.value, self.tem(c))


@dataclass(frozen=True)
class Perfil:
    usuario_id: str
    clinica_id: str
    nome: str
    email: str
    tipo: TipoUsuario
    status: StatusUsuario
    permissoes: Permissoes

    @property
    def is_master(self) -> bool:
        return self.tipo is TipoUsuario.MASTER


def perfil_de_usuario(usuario: Usuario) -> Perfil:
    """Master tem todas as capacidades; só os demais dependem da linha de permissões."""
    if usuario.tipo is TipoUsuario.MASTER:
        permissoes = Permissoes.todas()
    else:
        permissoes = Permissoes.de_linha(usuario.permissoes)

    return Perfil(
        usuario_id=usuario.id,
        clinica_id=usuario.clinica_id,
        nome=usuario.nome,
        email=usuario.email,
        tipo=usuario.tipo,
        status=usuario.status,
        permissoes=permissoes,
    )


class Autorizacao:
    """Ponto único de decisão de autorização."""

    def pode(self, perfil: Perfil, capacidade: Capacidade) -> bool:
        if perfil.status is not StatusUsuario.ATIVO:
            return False
        return perfil.permissoes.tem(capacidade)

    def exigir(self, perfil: Perfil, capacidade: Capacidade) -> None:
        if not self.pode(perfil, capacidade):
            raise ErroPermissao(f"Sem permissão para {capacidade.value}")

    def menu(self, perfil: Perfil) -> list[str]:
        return [c.value for c in CAPACIDADES if self.pode(perfil, c)]

    # ---- administração de usuários ----

    def tipos_convidaveis(self, perfil: Perfil) -> list[TipoUsuario]:
        if not self.pode(perfil, Capacidade.CRIAR_USUARIOS):
            return []
        if perfil.tipo is TipoUsuario.MASTER:
            return [TipoUsuario.GERENTE, TipoUsuario.USUARIO]
        if perfil.tipo is TipoUsuario.GERENTE:
            return [TipoUsuario.USUARIO]
        return []

    def concessiveis(self, perfil: Perfil) -> Permissoes:
        """O que `perfil` pode conceder: master tudo; gerente só o que ele mesmo tem, sem as administrativas."""
        if perfil.tipo is TipoUsuario.MASTER:
            return Permissoes.todas()
        if perfil.tipo is TipoUsuario.GERENTE:
            return perfil.permissoes.sem(ADMINISTRATIVAS)
        return Permissoes.nenhuma()

    def conceder(self, perfil: Perfil, solicitadas: Permissoes, tipo_destino: TipoUsuario) -> Permissoes:
        concedidas = solicitadas.intersecao(self.concessiveis(perfil))
        if tipo_destino is not TipoUsuario.GERENTE:
            concedidas = concedidas.sem(ADMINISTRATIVAS)
        return concedidas

    def pode_gerenciar_permissoes_de(self, perfil: Perfil, alvo: Usuario) -> bool:
        if not self.pode(perfil, Capacidade.GERENCIAR_PERMISSOES):
            return False
        if alvo.id == perfil.usuario_id or alvo.clinica_id != perfil.clinica_id:
            return False
        return alvo.tipo is not TipoUsuario.MASTER

    def pode_remover(self, perfil: Perfil, alvo: Usuario) -> bool:
        if not perfil.is_master or perfil.status is not StatusUsuario.ATIVO:
            return False
        return alvo.id != perfil.usuario_id and alvo.clinica_id == perfil.clinica_id
