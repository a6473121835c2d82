from __future__ import annotations

import enum
import uuid
from datetime import date, datetime
from typing import Any

from sqlalchemy import JSON, Boolean, Date, DateTime, Enum, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base


def new_uuid() -> str:
    return str(uuid.uuid4())


class StatusPaciente(enum.Enum):
    ATIVO = "ativo"
    INATIVO = "inativo"
    PENDENTE = "pendente"


class TipoEvento(enum.Enum):
    CONSULTA = "consulta"
    PROCEDIMENTO = "procedimento"
    RETORNO = "retorno"
    EMERGENCIA = "emergencia"


class StatusEvento(enum.Enum):
    AGENDADO = "agendado"
    CONFIRMADO = "confirmado"
    EM_ANDAMENTO = "em_andamento"
    CONCLUIDO = "concluido"
    CANCELADO = "cancelado"


class MetodoPagamento(enum.Enum):
    CARTAO = "cartao"
    PIX = "pix"


class StatusPagamento(enum.Enum):
    PENDENTE = "pendente"
    PAGO = "pago"
    FALHOU = "falhou"
    CANCELADO = "cancelado"


class Clinica(Base):
    __tablename__ = "clinicas"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    nome: Mapped[str] = mapped_column(String(160), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"Clinica({self.nome})"


class Paciente(Base):
    __tablename__ = "pacientes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    clinica_id: Mapped[str] = mapped_column(ForeignKey("clinicas.id"), nullable=False, index=True)
    nome: Mapped[str] = mapped_column(String(160), nullable=False)
    data_nascimento: Mapped[date | None] = mapped_column(Date, nullable=True)

    nacionalidade: Mapped[str] = mapped_column(String(20), default="brasileira", nullable=False)
    documento_tipo: Mapped[str] = mapped_column(String(20), default="cpf", nullable=False)
    cpf: Mapped[str | None] = mapped_column(String(11), nullable=True)
    rg: Mapped[str | None] = mapped_column(String(20), nullable=True)
    passaporte: Mapped[str | None] = mapped_column(String(30), nullable=True)
    sexo: Mapped[str | None] = mapped_column(String(20), nullable=True)

    telefone: Mapped[str | None] = mapped_column(String(30), nullable=True)
    celular: Mapped[str | None] = mapped_column(String(30), nullable=True)
    email: Mapped[str | None] = mapped_column(String(160), nullable=True)

    # responsável legal: só preenchido para menores de idade
    responsavel_nome: Mapped[str | None] = mapped_column(String(160), nullable=True)
    responsavel_parentesco: Mapped[str | None] = mapped_column(String(60), nullable=True)
    responsavel_telefone: Mapped[str | None] = mapped_column(String(30), nullable=True)
    responsavel_cpf: Mapped[str | None] = mapped_column(String(11), nullable=True)
    responsavel_rg: Mapped[str | None] = mapped_column(String(20), nullable=True)
    responsavel_idade: Mapped[int | None] = mapped_column(Integer, nullable=True)

    endereco: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    tipo_atendimento: Mapped[str] = mapped_column(String(20), default="particular", nullable=False)
    convenio_id: Mapped[str | None] = mapped_column(String(60), nullable=True)
    plano_id: Mapped[str | None] = mapped_column(String(60), nullable=True)
    numero_convenio: Mapped[str | None] = mapped_column(String(60), nullable=True)
    validade_convenio: Mapped[date | None] = mapped_column(Date, nullable=True)

    observacoes: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[StatusPaciente] = mapped_column(Enum(StatusPaciente), default=StatusPaciente.ATIVO, nullable=False)
    ultima_visita: Mapped[date | None] = mapped_column(Date, nullable=True)
    proxima_visita: Mapped[date | None] = mapped_column(Date, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    eventos: Mapped[list["Evento"]] = relationship(back_populates="paciente", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"Paciente({self.nome})"


class Profissional(Base):
    __tablename__ = "profissionais"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    clinica_id: Mapped[str] = mapped_column(ForeignKey("clinicas.id"), nullable=False, index=True)
    nome: Mapped[str] = mapped_column(String(160), nullable=False)
    conselho: Mapped[str | None] = mapped_column(String(40), nullable=True)
    especialidade: Mapped[str | None] = mapped_column(String(120), nullable=True)
    email: Mapped[str | None] = mapped_column(String(160), nullable=True)
    telefone: Mapped[str | None] = mapped_column(String(30), nullable=True)
    comissao_padrao_percent: Mapped[float | None] = mapped_column(Float, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    eventos: Mapped[list["Evento"]] = relationship(back_populates="profissional", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"Profissional({self.nome}, {self.conselho})"


class Servico(Base):
    __tablename__ = "catalogo_servicos"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    clinica_id: Mapped[str] = mapped_column(ForeignKey("clinicas.id"), nullable=False, index=True)
    nome: Mapped[str] = mapped_column(String(160), nullable=False)
    preco_base: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    duracao_min: Mapped[int | None] = mapped_column(Integer, nullable=True)
    comissao_padrao_percent: Mapped[float | None] = mapped_column(Float, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class Evento(Base):
    __tablename__ = "agendamentos"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    clinica_id: Mapped[str] = mapped_column(ForeignKey("clinicas.id"), nullable=False, index=True)
    titulo: Mapped[str] = mapped_column(String(200), nullable=False)

    paciente_id: Mapped[str] = mapped_column(ForeignKey("pacientes.id"), nullable=False)
    profissional_id: Mapped[str] = mapped_column(ForeignKey("profissionais.id"), nullable=False)

    # horário local da clínica, sem fuso
    data_inicio: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    data_fim: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    tipo: Mapped[TipoEvento] = mapped_column(Enum(TipoEvento), default=TipoEvento.CONSULTA, nullable=False)
    status: Mapped[StatusEvento] = mapped_column(Enum(StatusEvento), default=StatusEvento.AGENDADO, nullable=False)
    observacoes: Mapped[str | None] = mapped_column(Text, nullable=True)
    valor: Mapped[float | None] = mapped_column(Float, nullable=True)

    # integrações futuras (WhatsApp / lembretes)
    whatsapp_enviado: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    lembrete_enviado: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    paciente: Mapped["Paciente"] = relationship(back_populates="eventos")
    profissional: Mapped["Profissional"] = relationship(back_populates="eventos")


class CategoriaEstoque(Base):
    __tablename__ = "categorias_estoque"
    __table_args__ = (UniqueConstraint("clinica_id", "nome", name="uq_categoria_clinica_nome"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    clinica_id: Mapped[str] = mapped_column(ForeignKey("clinicas.id"), nullable=False, index=True)
    nome: Mapped[str] = mapped_column(String(120), nullable=False)

    produtos: Mapped[list["ProdutoEstoque"]] = relationship(back_populates="categoria")


class Fornecedor(Base):
    __tablename__ = "fornecedores"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    clinica_id: Mapped[str] = mapped_column(ForeignKey("clinicas.id"), nullable=False, index=True)
    nome: Mapped[str] = mapped_column(String(160), nullable=False)
    telefone: Mapped[str | None] = mapped_column(String(30), nullable=True)
    email: Mapped[str | None] = mapped_column(String(160), nullable=True)

    produtos: Mapped[list["ProdutoEstoque"]] = relationship(back_populates="fornecedor")


class ProdutoEstoque(Base):
    __tablename__ = "produtos_estoque"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    clinica_id: Mapped[str] = mapped_column(ForeignKey("clinicas.id"), nullable=False, index=True)
    nome: Mapped[str] = mapped_column(String(160), nullable=False)
    descricao: Mapped[str | None] = mapped_column(Text, nullable=True)
    codigo_barras: Mapped[str | None] = mapped_column(String(60), nullable=True)
    unidade_medida: Mapped[str] = mapped_column(String(30), default="unidade", nullable=False)

    quantidade_atual: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    quantidade_minima: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    preco_custo: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    preco_venda: Mapped[float] = mapped_column(Float, default=0, nullable=False)

    data_validade: Mapped[date | None] = mapped_column(Date, nullable=True)
    lote: Mapped[str | None] = mapped_column(String(60), nullable=True)

    categoria_id: Mapped[str | None] = mapped_column(ForeignKey("categorias_estoque.id"), nullable=True)
    fornecedor_id: Mapped[str | None] = mapped_column(ForeignKey("fornecedores.id"), nullable=True)
    ativo: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    categoria: Mapped[CategoriaEstoque | None] = relationship(back_populates="produtos")
    fornecedor: Mapped[Fornecedor | None] = relationship(back_populates="produtos")

    @property
    def em_falta(self) -> bool:
        return self.quantidade_atual <= self.quantidade_minima


class Pagamento(Base):
    __tablename__ = "pagamentos"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    clinica_id: Mapped[str] = mapped_column(ForeignKey("clinicas.id"), nullable=False, index=True)
    atendimento_id: Mapped[str | None] = mapped_column(ForeignKey("agendamentos.id", ondelete="SET NULL"), nullable=True)

    metodo: Mapped[MetodoPagamento] = mapped_column(Enum(MetodoPagamento), nullable=False)
    parcelas: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    valor_total: Mapped[float] = mapped_column(Float, nullable=False)
    descricao: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[StatusPagamento] = mapped_column(
        Enum(StatusPagamento), default=StatusPagamento.PENDENTE, nullable=False
    )

    provider: Mapped[str] = mapped_column(String(40), default="stripe", nullable=False)
    provider_reference: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class Convenio(Base):
    __tablename__ = "convenios"

    id: Mapped[str] = mapped_column(String(60), primary_key=True)
    nome: Mapped[str] = mapped_column(String(120), nullable=False, unique=True)

    planos: Mapped[list["Plano"]] = relationship(back_populates="convenio", cascade="all, delete-orphan")


class Plano(Base):
    __tablename__ = "planos"

    id: Mapped[str] = mapped_column(String(60), primary_key=True)
    convenio_id: Mapped[str] = mapped_column(ForeignKey("convenios.id"), nullable=False)
    nome: Mapped[str] = mapped_column(String(120), nullable=False)

    convenio: Mapped["Convenio"] = relationship(back_populates="planos")


class ConfiguracaoClinica(Base):
    __tablename__ = "configuracoes_clinica"
    __table_args__ = (UniqueConstraint("clinica_id", "categoria", name="uq_config_clinica_categoria"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    clinica_id: Mapped[str] = mapped_column(ForeignKey("clinicas.id"), nullable=False)
    categoria: Mapped[str] = mapped_column(String(40), nullable=False)
    configuracoes: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class LuziaConfiguracao(Base):
    __tablename__ = "luzia_configuracoes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    clinica_id: Mapped[str] = mapped_column(ForeignKey("clinicas.id"), nullable=False, unique=True)

    ativo: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    confirmacao_agendamento: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    reagendamento_automatico: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    cancelamento_automatico: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    antecedencia_confirmacao_horas: Mapped[int] = mapped_column(Integer, default=24, nullable=False)
    antecedencia_reagendamento_horas: Mapped[int] = mapped_column(Integer, default=2, nullable=False)

    mensagem_confirmacao: Mapped[str] = mapped_column(Text, nullable=False)
    mensagem_reagendamento: Mapped[str] = mapped_column(Text, nullable=False)
    mensagem_cancelamento: Mapped[str] = mapped_column(Text, nullable=False)

    telefone_whatsapp: Mapped[str | None] = mapped_column(String(30), nullable=True)
    api_key_whatsapp: Mapped[str | None] = mapped_column(String(255), nullable=True)


class LuziaLog(Base):
    __tablename__ = "luzia_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    clinica_id: Mapped[str] = mapped_column(ForeignKey("clinicas.id"), nullable=False, index=True)
    tipo_acao: Mapped[str] = mapped_column(String(40), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    mensagem_enviada: Mapped[str | None] = mapped_column(Text, nullable=True)
    resposta_recebida: Mapped[str | None] = mapped_column(Text, nullable=True)
    telefone_destino: Mapped[str | None] = mapped_column(String(30), nullable=True)
    erro: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
