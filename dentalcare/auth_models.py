from __future__ import annotations

import enum
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, Boolean, DateTime, Enum, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base
from .models import new_uuid


class TipoUsuario(enum.Enum):
    MASTER = "master"
    GERENTE = "gerente"
    USUARIO = "usuario"


class StatusUsuario(enum.Enum):
    ATIVO = "ativo"
    PENDENTE = "pendente"
    INATIVO = "inativo"


class Usuario(Base):
    """
    Usuário da clínica.
    - email único
    - password_hash com bcrypt (passlib); nulo até o convite ser aceito
    - desativação lógica via status INATIVO
    """
    __tablename__ = "usuarios"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    clinica_id: Mapped[str] = mapped_column(ForeignKey("clinicas.id"), nullable=False, index=True)
    nome: Mapped[str] = mapped_column(String(160), nullable=False)
    email: Mapped[str] = mapped_column(String(160), unique=True, nullable=False)
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)

    tipo: Mapped[TipoUsuario] = mapped_column(Enum(TipoUsuario), default=TipoUsuario.USUARIO, nullable=False)
    status: Mapped[StatusUsuario] = mapped_column(Enum(StatusUsuario), default=StatusUsuario.PENDENTE, nullable=False)

    cpf_cnpj: Mapped[str | None] = mapped_column(String(14), nullable=True)
    rg: Mapped[str | None] = mapped_column(String(20), nullable=True)
    cro: Mapped[str | None] = mapped_column(String(30), nullable=True)
    telefone: Mapped[str | None] = mapped_column(String(30), nullable=True)
    tipo_pessoa: Mapped[str | None] = mapped_column(String(2), nullable=True)
    endereco: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    foto_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    permissoes: Mapped[Optional["PermissoesUsuario"]] = relationship(
        back_populates="usuario", cascade="all, delete-orphan", uselist=False
    )


class PermissoesUsuario(Base):
    """Uma coluna booleana por capacidade (ver permissoes.CAPACIDADES)."""
    __tablename__ = "permissoes_usuario"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    usuario_id: Mapped[str] = mapped_column(ForeignKey("usuarios.id"), unique=True, nullable=False)

    dashboard: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    pacientes: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    profissionais: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    agenda: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    financeiro: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    estoque: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    catalogo_servicos: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    configuracoes: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    luzia: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    criar_usuarios: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    gerenciar_permissoes: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    usuario: Mapped["Usuario"] = relationship(back_populates="permissoes")
