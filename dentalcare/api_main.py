from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import date
from typing import Any, AsyncIterator, Callable
from zoneinfo import ZoneInfo

import requests
from fastapi import Depends, FastAPI, Query, Request, status
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError

from . import (
    agenda,
    auth_service,
    busca,
    cadastros,
    configuracoes,
    dashboard,
    estoque,
    financeiro,
    luzia,
    pacientes,
    usuarios,
)
from .auth_models import StatusUsuario, TipoUsuario
from .auth_security import TokenCodec
from .cep import buscar_cep
from .config import Settings, load_settings
from .convenios import CatalogoConvenios
from .db import Database
from .errors import ErroAutenticacao, ErroGateway, ErroPermissao, ErroValidacao, NaoEncontrado
from .logging_config import configure_logging, get_logger
from .models import StatusPagamento
from .permissoes import Autorizacao, Capacidade, Perfil
from .seed import seed_base
from .validacao import forca_senha

logger = get_logger(__name__)

# OAuth2 Bearer (Authorization: Bearer <token>)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


# Schemas Auth

class CadastroIn(BaseModel):
    nome_clinica: str
    nome: str
    email: str
    password: str
    confirmacao: str
    telefone: str | None = None
    cpf_cnpj: str | None = None
    rg: str | None = None
    cro: str | None = None
    tipo_pessoa: str | None = None
    endereco: dict[str, Any] | None = None


class TokenIn(BaseModel):
    token: str


class EmailIn(BaseModel):
    email: str


class SenhaIn(BaseModel):
    password: str


class NovaSenhaIn(BaseModel):
    token: str
    password: str
    confirmacao: str


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"


class PerfilIn(BaseModel):
    nome: str | None = None
    telefone: str | None = None
    cpf_cnpj: str | None = None
    rg: str | None = None
    cro: str | None = None
    tipo_pessoa: str | None = None
    endereco: dict[str, Any] | None = None
    foto_url: str | None = None


# Schemas Usuários

class ConviteIn(BaseModel):
    nome: str
    email: str
    tipo: TipoUsuario = TipoUsuario.USUARIO
    permissoes: dict[str, bool] | None = None


class StatusUsuarioIn(BaseModel):
    status: StatusUsuario


# Schemas Domínio
# Campos soltos: a validação por campo fica nos serviços (mensagens em `campos`).

class PacienteIn(BaseModel):
    nome: str | None = None
    data_nascimento: str | None = None
    nacionalidade: str | None = None
    documento_tipo: str | None = None
    cpf: str | None = None
    rg: str | None = None
    passaporte: str | None = None
    sexo: str | None = None
    telefone: str | None = None
    celular: str | None = None
    email: str | None = None
    responsavel_nome: str | None = None
    responsavel_parentesco: str | None = None
    responsavel_telefone: str | None = None
    responsavel_cpf: str | None = None
    responsavel_rg: str | None = None
    responsavel_idade: int | None = None
    endereco: dict[str, Any] | None = None
    tipo_atendimento: str | None = None
    convenio_id: str | None = None
    plano_id: str | None = None
    numero_convenio: str | None = None
    validade_convenio: str | None = None
    observacoes: str | None = None
    status: str | None = None
    ativo: bool | None = None
    ultima_visita: str | None = None
    proxima_visita: str | None = None


class ProfissionalIn(BaseModel):
    nome: str | None = None
    conselho: str | None = None
    especialidade: str | None = None
    email: str | None = None
    telefone: str | None = None
    comissao_padrao_percent: float | str | None = None


class ServicoIn(BaseModel):
    nome: str | None = None
    preco_base: float | str | None = None
    duracao_min: int | str | None = None
    comissao_padrao_percent: float | str | None = None


class EventoIn(BaseModel):
    titulo: str | None = None
    paciente_id: str | None = None
    profissional_id: str | None = None
    data_inicio: str | None = None
    data_fim: str | None = None
    tipo: str | None = None
    status: str | None = None
    observacoes: str | None = None
    valor: float | str | None = None


class ProdutoIn(BaseModel):
    nome: str | None = None
    descricao: str | None = None
    codigo_barras: str | None = None
    unidade_medida: str | None = None
    quantidade_atual: float | str | None = None
    quantidade_minima: float | str | None = None
    preco_custo: float | str | None = None
    preco_venda: float | str | None = None
    data_validade: str | None = None
    lote: str | None = None
    categoria_id: str | None = None
    fornecedor_id: str | None = None
    ativo: bool = True


class CategoriaIn(BaseModel):
    nome: str | None = None


class FornecedorIn(BaseModel):
    nome: str | None = None
    telefone: str | None = None
    email: str | None = None


class PagamentoIn(BaseModel):
    valor_total: float | str | None = None
    metodo: str = "cartao"
    parcelas: int = Field(default=1)
    descricao: str | None = None
    atendimento_id: str | None = None


class StatusPagamentoIn(BaseModel):
    status: StatusPagamento


class CardsIn(BaseModel):
    cards: list[str]


# Dependências

def get_db(request: Request) -> Database:
    return request.app.state.db


def get_tokens(request: Request) -> TokenCodec:
    return request.app.state.tokens


def get_autorizacao(request: Request) -> Autorizacao:
    return request.app.state.autorizacao


def get_perfil(request: Request, token: str = Depends(oauth2_scheme)) -> Perfil:
    # protege contra espaços / aspas acidentais
    token = token.strip().strip('"').strip("'")

    usuario_id = request.app.state.tokens.get_subject(token)
    if not usuario_id:
        raise ErroAutenticacao("Token inválido")

    perfil = auth_service.resolver_perfil(request.app.state.db, usuario_id)
    if not perfil or perfil.status is not StatusUsuario.ATIVO:
        raise ErroAutenticacao("Usuário inválido")
    return perfil


def exigir(capacidade: Capacidade) -> Callable[..., Perfil]:
    """Dependência: perfil autenticado que tem a capacidade."""

    def _dependencia(request: Request, perfil: Perfil = Depends(get_perfil)) -> Perfil:
        request.app.state.autorizacao.exigir(perfil, capacidade)
        return perfil

    return _dependencia


# Tratamento de erros

def _registrar_handlers(app: FastAPI) -> None:
    @app.exception_handler(ErroValidacao)
    async def _validacao(request: Request, exc: ErroValidacao) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": exc.mensagem, "campos": exc.campos})

    @app.exception_handler(ErroAutenticacao)
    async def _autenticacao(request: Request, exc: ErroAutenticacao) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"detail": str(exc)},
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(ErroPermissao)
    async def _permissao(request: Request, exc: ErroPermissao) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content={"detail": str(exc)})

    @app.exception_handler(NaoEncontrado)
    async def _nao_encontrado(request: Request, exc: NaoEncontrado) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})

    @app.exception_handler(ErroGateway)
    async def _gateway(request: Request, exc: ErroGateway) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content={"detail": str(exc)})

    @app.exception_handler(SQLAlchemyError)
    async def _banco(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        logger.exception("erro_banco", path=request.url.path)
        # mensagem do driver, sem tradução
        mensagem = str(getattr(exc, "orig", None) or exc)
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": mensagem})


# Rotas

def _registrar_rotas(app: FastAPI) -> None:
    # AUTH endpoints

    @app.post("/api/auth/cadastro")
    def cadastro(
        payload: CadastroIn, db: Database = Depends(get_db), tokens: TokenCodec = Depends(get_tokens)
    ) -> dict[str, Any]:
        dados = payload.model_dump(exclude={"nome_clinica", "nome", "email", "password", "confirmacao"})
        r = auth_service.cadastrar(
            db,
            tokens,
            nome_clinica=payload.nome_clinica,
            nome=payload.nome,
            email=payload.email,
            password=payload.password,
            confirmacao=payload.confirmacao,
            **dados,
        )
        logger.info("token_confirmacao_emitido", usuario_id=r.usuario_id)
        return {
            "ok": True,
            "clinica_id": r.clinica_id,
            "usuario_id": r.usuario_id,
            "status": StatusUsuario.PENDENTE.value,
            "token_confirmacao": r.token_confirmacao,
        }

    @app.post("/api/auth/confirmar")
    def confirmar(
        payload: TokenIn, db: Database = Depends(get_db), tokens: TokenCodec = Depends(get_tokens)
    ) -> dict[str, Any]:
        usuario_id = auth_service.confirmar_email(db, tokens, payload.token)
        return {"ok": True, "usuario_id": usuario_id}

    @app.post("/api/auth/login", response_model=TokenOut)
    def login(
        form: OAuth2PasswordRequestForm = Depends(),
        db: Database = Depends(get_db),
        tokens: TokenCodec = Depends(get_tokens),
    ) -> TokenOut:
        perfil = auth_service.autenticar(db, form.username, form.password)
        token = tokens.create_token(subject=perfil.usuario_id, extra={"email": perfil.email})
        return TokenOut(access_token=token)

    @app.post("/api/auth/forca-senha")
    def api_forca_senha(payload: SenhaIn) -> dict[str, bool]:
        f = forca_senha(payload.password)
        return {
            "min_length": f.min_length,
            "has_uppercase": f.has_uppercase,
            "has_number": f.has_number,
            "has_special_char": f.has_special_char,
            "valida": f.valida,
        }

    @app.post("/api/auth/esqueci-senha")
    def esqueci_senha(
        payload: EmailIn,
        request: Request,
        db: Database = Depends(get_db),
        tokens: TokenCodec = Depends(get_tokens),
    ) -> dict[str, Any]:
        token = auth_service.solicitar_redefinicao(db, tokens, payload.email)
        # a resposta não revela se o e-mail existe; o token só volta em modo debug
        resposta: dict[str, Any] = {"ok": True}
        if request.app.state.settings.debug:
            resposta["token_redefinicao"] = token
        return resposta

    @app.post("/api/auth/redefinir-senha")
    def redefinir(
        payload: NovaSenhaIn, db: Database = Depends(get_db), tokens: TokenCodec = Depends(get_tokens)
    ) -> dict[str, Any]:
        auth_service.redefinir_senha(db, tokens, payload.token, payload.password, payload.confirmacao)
        return {"ok": True}

    @app.post("/api/auth/aceitar-convite")
    def aceitar_convite(
        payload: NovaSenhaIn, db: Database = Depends(get_db), tokens: TokenCodec = Depends(get_tokens)
    ) -> dict[str, Any]:
        usuario_id = auth_service.aceitar_convite(db, tokens, payload.token, payload.password, payload.confirmacao)
        return {"ok": True, "usuario_id": usuario_id}

    @app.get("/api/me")
    def me(
        perfil: Perfil = Depends(get_perfil),
        db: Database = Depends(get_db),
        autorizacao: Autorizacao = Depends(get_autorizacao),
    ) -> dict[str, Any]:
        dados = auth_service.dados_usuario(db, perfil.usuario_id)
        dados["permissoes"] = perfil.permissoes.como_dict()
        dados["menu"] = autorizacao.menu(perfil)
        return dados

    @app.put("/api/me")
    def atualizar_me(
        payload: PerfilIn, perfil: Perfil = Depends(get_perfil), db: Database = Depends(get_db)
    ) -> dict[str, Any]:
        return auth_service.atualizar_perfil(db, perfil, payload.model_dump(exclude_unset=True))

    # USUÁRIOS

    @app.get("/api/usuarios")
    def api_usuarios(
        perfil: Perfil = Depends(get_perfil),
        db: Database = Depends(get_db),
        autorizacao: Autorizacao = Depends(get_autorizacao),
    ) -> list[dict]:
        return usuarios.listar(db, autorizacao, perfil)

    @app.post("/api/usuarios/convites")
    def api_convidar(
        payload: ConviteIn,
        perfil: Perfil = Depends(get_perfil),
        db: Database = Depends(get_db),
        tokens: TokenCodec = Depends(get_tokens),
        autorizacao: Autorizacao = Depends(get_autorizacao),
    ) -> dict[str, Any]:
        r = usuarios.convidar(db, tokens, autorizacao, perfil, payload.nome, payload.email, payload.tipo, payload.permissoes)
        return {"ok": True, "usuario_id": r.usuario_id, "token_convite": r.token_convite, "permissoes": r.permissoes}

    @app.put("/api/usuarios/{usuario_id}/permissoes")
    def api_permissoes(
        usuario_id: str,
        payload: dict[str, bool],
        perfil: Perfil = Depends(get_perfil),
        db: Database = Depends(get_db),
        autorizacao: Autorizacao = Depends(get_autorizacao),
    ) -> dict[str, Any]:
        return usuarios.atualizar_permissoes(db, autorizacao, perfil, usuario_id, payload)

    @app.put("/api/usuarios/{usuario_id}/status")
    def api_status_usuario(
        usuario_id: str,
        payload: StatusUsuarioIn,
        perfil: Perfil = Depends(get_perfil),
        db: Database = Depends(get_db),
        autorizacao: Autorizacao = Depends(get_autorizacao),
    ) -> dict[str, Any]:
        return usuarios.alterar_status(db, autorizacao, perfil, usuario_id, payload.status)

    @app.delete("/api/usuarios/{usuario_id}")
    def api_remover_usuario(
        usuario_id: str,
        perfil: Perfil = Depends(get_perfil),
        db: Database = Depends(get_db),
        autorizacao: Autorizacao = Depends(get_autorizacao),
    ) -> dict[str, Any]:
        usuarios.remover(db, autorizacao, perfil, usuario_id)
        return {"ok": True}

    # PACIENTES

    @app.get("/api/pacientes")
    def api_pacientes(
        busca_: str | None = Query(None, alias="busca"),
        perfil: Perfil = Depends(exigir(Capacidade.PACIENTES)),
        db: Database = Depends(get_db),
    ) -> list[dict]:
        return pacientes.listar(db, perfil.clinica_id, busca_)

    @app.get("/api/pacientes/{paciente_id}")
    def api_paciente(
        paciente_id: str, perfil: Perfil = Depends(exigir(Capacidade.PACIENTES)), db: Database = Depends(get_db)
    ) -> dict[str, Any]:
        return pacientes.obter(db, perfil.clinica_id, paciente_id)

    @app.post("/api/pacientes")
    def api_criar_paciente(
        payload: PacienteIn, perfil: Perfil = Depends(exigir(Capacidade.PACIENTES)), db: Database = Depends(get_db)
    ) -> dict[str, Any]:
        return pacientes.criar(db, perfil.clinica_id, payload.model_dump())

    @app.put("/api/pacientes/{paciente_id}")
    def api_atualizar_paciente(
        paciente_id: str,
        payload: PacienteIn,
        perfil: Perfil = Depends(exigir(Capacidade.PACIENTES)),
        db: Database = Depends(get_db),
    ) -> dict[str, Any]:
        return pacientes.atualizar(db, perfil.clinica_id, paciente_id, payload.model_dump())

    @app.delete("/api/pacientes/{paciente_id}")
    def api_remover_paciente(
        paciente_id: str, perfil: Perfil = Depends(exigir(Capacidade.PACIENTES)), db: Database = Depends(get_db)
    ) -> dict[str, Any]:
        pacientes.remover(db, perfil.clinica_id, paciente_id)
        return {"ok": True}

    # PROFISSIONAIS

    @app.get("/api/profissionais")
    def api_profissionais(
        perfil: Perfil = Depends(exigir(Capacidade.PROFISSIONAIS)), db: Database = Depends(get_db)
    ) -> list[dict]:
        return cadastros.listar_profissionais(db, perfil.clinica_id)

    @app.post("/api/profissionais")
    def api_criar_profissional(
        payload: ProfissionalIn,
        perfil: Perfil = Depends(exigir(Capacidade.PROFISSIONAIS)),
        db: Database = Depends(get_db),
    ) -> dict[str, Any]:
        return cadastros.criar_profissional(db, perfil.clinica_id, payload.model_dump())

    @app.put("/api/profissionais/{profissional_id}")
    def api_atualizar_profissional(
        profissional_id: str,
        payload: ProfissionalIn,
        perfil: Perfil = Depends(exigir(Capacidade.PROFISSIONAIS)),
        db: Database = Depends(get_db),
    ) -> dict[str, Any]:
        return cadastros.atualizar_profissional(db, perfil.clinica_id, profissional_id, payload.model_dump())

    @app.delete("/api/profissionais/{profissional_id}")
    def api_remover_profissional(
        profissional_id: str,
        perfil: Perfil = Depends(exigir(Capacidade.PROFISSIONAIS)),
        db: Database = Depends(get_db),
    ) -> dict[str, Any]:
        cadastros.remover_profissional(db, perfil.clinica_id, profissional_id)
        return {"ok": True}

    # CATÁLOGO DE SERVIÇOS

    @app.get("/api/servicos")
    def api_servicos(
        perfil: Perfil = Depends(exigir(Capacidade.CATALOGO_SERVICOS)), db: Database = Depends(get_db)
    ) -> list[dict]:
        return cadastros.listar_servicos(db, perfil.clinica_id)

    @app.post("/api/servicos")
    def api_criar_servico(
        payload: ServicoIn,
        perfil: Perfil = Depends(exigir(Capacidade.CATALOGO_SERVICOS)),
        db: Database = Depends(get_db),
    ) -> dict[str, Any]:
        return cadastros.criar_servico(db, perfil.clinica_id, payload.model_dump())

    @app.put("/api/servicos/{servico_id}")
    def api_atualizar_servico(
        servico_id: str,
        payload: ServicoIn,
        perfil: Perfil = Depends(exigir(Capacidade.CATALOGO_SERVICOS)),
        db: Database = Depends(get_db),
    ) -> dict[str, Any]:
        return cadastros.atualizar_servico(db, perfil.clinica_id, servico_id, payload.model_dump())

    @app.delete("/api/servicos/{servico_id}")
    def api_remover_servico(
        servico_id: str,
        perfil: Perfil = Depends(exigir(Capacidade.CATALOGO_SERVICOS)),
        db: Database = Depends(get_db),
    ) -> dict[str, Any]:
        cadastros.remover_servico(db, perfil.clinica_id, servico_id)
        return {"ok": True}

    # AGENDA

    @app.get("/api/agenda/eventos")
    def api_eventos(
        request: Request,
        busca_: str = Query("", alias="busca"),
        profissional_id: str = Query(""),
        tipo: str = Query(""),
        status_: str = Query("", alias="status"),
        data_inicio: date | None = Query(None),
        data_fim: date | None = Query(None),
        perfil: Perfil = Depends(exigir(Capacidade.AGENDA)),
        db: Database = Depends(get_db),
    ) -> dict[str, Any]:
        filtros = agenda.FiltrosAgenda(
            busca=busca_,
            profissional_id=profissional_id,
            tipo=tipo,
            status=status_,
            data_inicio=data_inicio,
            data_fim=data_fim,
        )
        eventos = agenda.listar_eventos(db, perfil.clinica_id)
        filtrados = agenda.filtrar_eventos(eventos, filtros, request.app.state.fuso)
        return {
            "eventos": [e.como_dict() for e in filtrados],
            "total": len(eventos),
            "filtros_ativos": agenda.contar_filtros_ativos(filtros),
        }

    @app.get("/api/agenda/dia")
    def api_agenda_dia(
        request: Request,
        dia: date = Query(...),
        profissional_id: str | None = Query(None),
        perfil: Perfil = Depends(exigir(Capacidade.AGENDA)),
        db: Database = Depends(get_db),
    ) -> list[dict]:
        eventos = agenda.listar_eventos(db, perfil.clinica_id)
        slots = agenda.agenda_do_dia(eventos, dia, profissional_id, request.app.state.fuso)
        return [slot.como_dict() for slot in slots]

    @app.get("/api/agenda/opcoes")
    def api_agenda_opcoes(
        perfil: Perfil = Depends(exigir(Capacidade.AGENDA)), db: Database = Depends(get_db)
    ) -> dict[str, Any]:
        # seletores do formulário de agendamento
        return {
            "pacientes": [{"id": p["id"], "nome": p["nome"]} for p in pacientes.listar(db, perfil.clinica_id)],
            "profissionais": [
                {"id": p["id"], "nome": p["nome"]} for p in cadastros.listar_profissionais(db, perfil.clinica_id)
            ],
        }

    @app.get("/api/agenda/eventos/{evento_id}")
    def api_evento(
        evento_id: str, perfil: Perfil = Depends(exigir(Capacidade.AGENDA)), db: Database = Depends(get_db)
    ) -> dict[str, Any]:
        return agenda.obter_evento(db, perfil.clinica_id, evento_id).como_dict()

    @app.post("/api/agenda/eventos")
    def api_criar_evento(
        payload: EventoIn,
        request: Request,
        perfil: Perfil = Depends(exigir(Capacidade.AGENDA)),
        db: Database = Depends(get_db),
    ) -> dict[str, Any]:
        return agenda.criar_evento(db, perfil.clinica_id, payload.model_dump(), request.app.state.fuso).como_dict()

    @app.put("/api/agenda/eventos/{evento_id}")
    def api_atualizar_evento(
        evento_id: str,
        payload: EventoIn,
        request: Request,
        perfil: Perfil = Depends(exigir(Capacidade.AGENDA)),
        db: Database = Depends(get_db),
    ) -> dict[str, Any]:
        salvo = agenda.atualizar_evento(db, perfil.clinica_id, evento_id, payload.model_dump(), request.app.state.fuso)
        return salvo.como_dict()

    @app.delete("/api/agenda/eventos/{evento_id}")
    def api_remover_evento(
        evento_id: str, perfil: Perfil = Depends(exigir(Capacidade.AGENDA)), db: Database = Depends(get_db)
    ) -> dict[str, Any]:
        agenda.remover_evento(db, perfil.clinica_id, evento_id)
        return {"ok": True}

    # ESTOQUE

    @app.get("/api/estoque/produtos")
    def api_produtos(
        busca_: str | None = Query(None, alias="busca"),
        em_falta: bool = Query(False),
        perfil: Perfil = Depends(exigir(Capacidade.ESTOQUE)),
        db: Database = Depends(get_db),
    ) -> list[dict]:
        return estoque.listar_produtos(db, perfil.clinica_id, busca_, somente_em_falta=em_falta)

    @app.post("/api/estoque/produtos")
    def api_criar_produto(
        payload: ProdutoIn, perfil: Perfil = Depends(exigir(Capacidade.ESTOQUE)), db: Database = Depends(get_db)
    ) -> dict[str, Any]:
        return estoque.criar_produto(db, perfil.clinica_id, payload.model_dump())

    @app.put("/api/estoque/produtos/{produto_id}")
    def api_atualizar_produto(
        produto_id: str,
        payload: ProdutoIn,
        perfil: Perfil = Depends(exigir(Capacidade.ESTOQUE)),
        db: Database = Depends(get_db),
    ) -> dict[str, Any]:
        return estoque.atualizar_produto(db, perfil.clinica_id, produto_id, payload.model_dump())

    @app.delete("/api/estoque/produtos/{produto_id}")
    def api_remover_produto(
        produto_id: str, perfil: Perfil = Depends(exigir(Capacidade.ESTOQUE)), db: Database = Depends(get_db)
    ) -> dict[str, Any]:
        estoque.remover_produto(db, perfil.clinica_id, produto_id)
        return {"ok": True}

    @app.get("/api/estoque/categorias")
    def api_categorias(perfil: Perfil = Depends(exigir(Capacidade.ESTOQUE)), db: Database = Depends(get_db)) -> list[dict]:
        return estoque.listar_categorias(db, perfil.clinica_id)

    @app.post("/api/estoque/categorias")
    def api_criar_categoria(
        payload: CategoriaIn, perfil: Perfil = Depends(exigir(Capacidade.ESTOQUE)), db: Database = Depends(get_db)
    ) -> dict[str, Any]:
        return estoque.salvar_categoria(db, perfil.clinica_id, payload.nome or "")

    @app.put("/api/estoque/categorias/{categoria_id}")
    def api_atualizar_categoria(
        categoria_id: str,
        payload: CategoriaIn,
        perfil: Perfil = Depends(exigir(Capacidade.ESTOQUE)),
        db: Database = Depends(get_db),
    ) -> dict[str, Any]:
        return estoque.salvar_categoria(db, perfil.clinica_id, payload.nome or "", categoria_id=categoria_id)

    @app.delete("/api/estoque/categorias/{categoria_id}")
    def api_remover_categoria(
        categoria_id: str, perfil: Perfil = Depends(exigir(Capacidade.ESTOQUE)), db: Database = Depends(get_db)
    ) -> dict[str, Any]:
        estoque.remover_categoria(db, perfil.clinica_id, categoria_id)
        return {"ok": True}

    @app.get("/api/estoque/fornecedores")
    def api_fornecedores(
        perfil: Perfil = Depends(exigir(Capacidade.ESTOQUE)), db: Database = Depends(get_db)
    ) -> list[dict]:
        return estoque.listar_fornecedores(db, perfil.clinica_id)

    @app.post("/api/estoque/fornecedores")
    def api_criar_fornecedor(
        payload: FornecedorIn, perfil: Perfil = Depends(exigir(Capacidade.ESTOQUE)), db: Database = Depends(get_db)
    ) -> dict[str, Any]:
        return estoque.salvar_fornecedor(db, perfil.clinica_id, payload.model_dump())

    @app.put("/api/estoque/fornecedores/{fornecedor_id}")
    def api_atualizar_fornecedor(
        fornecedor_id: str,
        payload: FornecedorIn,
        perfil: Perfil = Depends(exigir(Capacidade.ESTOQUE)),
        db: Database = Depends(get_db),
    ) -> dict[str, Any]:
        return estoque.salvar_fornecedor(db, perfil.clinica_id, payload.model_dump(), fornecedor_id=fornecedor_id)

    @app.delete("/api/estoque/fornecedores/{fornecedor_id}")
    def api_remover_fornecedor(
        fornecedor_id: str, perfil: Perfil = Depends(exigir(Capacidade.ESTOQUE)), db: Database = Depends(get_db)
    ) -> dict[str, Any]:
        estoque.remover_fornecedor(db, perfil.clinica_id, fornecedor_id)
        return {"ok": True}

    # FINANCEIRO

    @app.get("/api/pagamentos")
    def api_pagamentos(
        perfil: Perfil = Depends(exigir(Capacidade.FINANCEIRO)), db: Database = Depends(get_db)
    ) -> list[dict]:
        return financeiro.listar_pagamentos(db, perfil.clinica_id)

    @app.post("/api/pagamentos/link")
    def api_link_pagamento(
        payload: PagamentoIn,
        request: Request,
        perfil: Perfil = Depends(exigir(Capacidade.FINANCEIRO)),
        db: Database = Depends(get_db),
    ) -> dict[str, Any]:
        return financeiro.gerar_link(db, request.app.state.gateway, perfil.clinica_id, payload.model_dump())

    @app.put("/api/pagamentos/{pagamento_id}/status")
    def api_status_pagamento(
        pagamento_id: str,
        payload: StatusPagamentoIn,
        perfil: Perfil = Depends(exigir(Capacidade.FINANCEIRO)),
        db: Database = Depends(get_db),
    ) -> dict[str, Any]:
        return financeiro.alterar_status(db, perfil.clinica_id, pagamento_id, payload.status)

    # APOIO (CEP, convênios, busca)

    @app.get("/api/cep/{cep}")
    def api_cep(cep: str, request: Request, perfil: Perfil = Depends(get_perfil)) -> dict[str, Any] | None:
        return buscar_cep(cep, session=request.app.state.http, timeout=request.app.state.settings.cep_timeout)

    @app.get("/api/convenios")
    def api_convenios(request: Request, perfil: Perfil = Depends(get_perfil)) -> list[dict]:
        return request.app.state.catalogo.listar_convenios()

    @app.get("/api/convenios/{convenio_id}/planos")
    def api_planos(convenio_id: str, request: Request, perfil: Perfil = Depends(get_perfil)) -> list[dict]:
        return request.app.state.catalogo.listar_planos(convenio_id)

    @app.get("/api/busca")
    def api_busca(
        q: str = Query(""), perfil: Perfil = Depends(get_perfil), db: Database = Depends(get_db)
    ) -> list[dict]:
        return busca.buscar(db, perfil.clinica_id, q)

    # CONFIGURAÇÕES / DASHBOARD

    @app.get("/api/configuracoes")
    def api_configuracoes(perfil: Perfil = Depends(get_perfil), db: Database = Depends(get_db)) -> dict[str, Any]:
        return configuracoes.obter_todas(db, perfil.clinica_id)

    @app.get("/api/configuracoes/{categoria}")
    def api_configuracao(
        categoria: str, perfil: Perfil = Depends(get_perfil), db: Database = Depends(get_db)
    ) -> dict[str, Any] | None:
        return configuracoes.obter(db, perfil.clinica_id, categoria)

    @app.put("/api/configuracoes/{categoria}")
    def api_salvar_configuracao(
        categoria: str,
        payload: dict[str, Any],
        perfil: Perfil = Depends(exigir(Capacidade.CONFIGURACOES)),
        db: Database = Depends(get_db),
    ) -> dict[str, Any]:
        return configuracoes.salvar(db, perfil.clinica_id, categoria, payload)

    @app.get("/api/dashboard/cards")
    def api_cards(perfil: Perfil = Depends(get_perfil), db: Database = Depends(get_db)) -> list[dict]:
        return configuracoes.cards_dashboard(db, perfil.clinica_id)

    @app.put("/api/dashboard/cards")
    def api_salvar_cards(
        payload: CardsIn, perfil: Perfil = Depends(exigir(Capacidade.CONFIGURACOES)), db: Database = Depends(get_db)
    ) -> dict[str, Any]:
        return {"ok": True, "cards": configuracoes.salvar_cards(db, perfil.clinica_id, payload.cards)}

    @app.get("/api/dashboard/resumo")
    def api_resumo(
        request: Request, perfil: Perfil = Depends(exigir(Capacidade.DASHBOARD)), db: Database = Depends(get_db)
    ) -> dict[str, Any]:
        fuso = request.app.state.fuso
        return dashboard.resumo(db, perfil.clinica_id, dashboard.hoje_local(fuso), fuso)

    # LUZIA

    @app.get("/api/luzia/configuracao")
    def api_luzia(perfil: Perfil = Depends(exigir(Capacidade.LUZIA)), db: Database = Depends(get_db)) -> dict[str, Any]:
        return luzia.obter_configuracao(db, perfil.clinica_id)

    @app.put("/api/luzia/configuracao")
    def api_salvar_luzia(
        payload: dict[str, Any], perfil: Perfil = Depends(exigir(Capacidade.LUZIA)), db: Database = Depends(get_db)
    ) -> dict[str, Any]:
        return luzia.salvar_configuracao(db, perfil, payload)

    @app.get("/api/luzia/preview")
    def api_luzia_preview(
        request: Request, perfil: Perfil = Depends(exigir(Capacidade.LUZIA)), db: Database = Depends(get_db)
    ) -> dict[str, str]:
        return luzia.pre_visualizacao(db, perfil.clinica_id, dashboard.hoje_local(request.app.state.fuso))

    @app.get("/api/luzia/logs")
    def api_luzia_logs(perfil: Perfil = Depends(exigir(Capacidade.LUZIA)), db: Database = Depends(get_db)) -> list[dict]:
        return luzia.listar_logs(db, perfil.clinica_id)


def create_app(settings: Settings | None = None, database: Database | None = None) -> FastAPI:
    """
    Monta a aplicação.
    - dependências (banco, tokens, gateway, catálogo) ficam em app.state
    - startup: cria tabelas e seed base (idempotente)
    - shutdown: libera o engine
    """
    settings = settings or load_settings()
    configure_logging(settings)
    db = database or Database(settings.database_url, echo=False)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        db.create_all()
        seed_base(db)
        logger.info("api_iniciada", banco=db.engine.url.render_as_string(hide_password=True))
        try:
            yield
        finally:
            app.state.http.close()
            db.dispose()
            logger.info("api_encerrada")

    app = FastAPI(title="DentalCare Pro API", version="1.0.0", lifespan=lifespan)

    app.state.settings = settings
    app.state.db = db
    app.state.tokens = TokenCodec(settings.jwt_secret, settings.jwt_expire_minutes)
    app.state.autorizacao = Autorizacao()
    app.state.fuso = ZoneInfo(settings.fuso_horario)
    app.state.http = requests.Session()
    app.state.gateway = financeiro.LinkPagamentoGateway(
        url=settings.link_pagamento_url,
        api_key=settings.link_pagamento_api_key,
        timeout=settings.link_pagamento_timeout,
        session=app.state.http,
    )
    app.state.catalogo = CatalogoConvenios(db)

    _registrar_handlers(app)
    _registrar_rotas(app)
    return app


app = create_app()
