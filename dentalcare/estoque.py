from __future__ import annotations

from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from .db import Database
from .errors import ErroValidacao, NaoEncontrado
from .logging_config import get_logger
from .models import CategoriaEstoque, Fornecedor, ProdutoEstoque
from .validacao import data_ou_none, email_ou_none, numero, obrigatorio, texto

logger = get_logger(__name__)

SEM_CATEGORIA = "Sem categoria"
SEM_FORNECEDOR = "Sem fornecedor"


# =========================
# Produtos
# =========================
def produto_flat(p: ProdutoEstoque) -> dict[str, Any]:
    return {
        "id": p.id,
        "nome": p.nome,
        "descricao": p.descricao,
        "codigo_barras": p.codigo_barras,
        "unidade_medida": p.unidade_medida,
        "quantidade_atual": p.quantidade_atual,
        "quantidade_minima": p.quantidade_minima,
        "preco_custo": p.preco_custo,
        "preco_venda": p.preco_venda,
        "data_validade": p.data_validade.isoformat() if p.data_validade else None,
        "lote": p.lote,
        "categoria_id": p.categoria_id,
        "fornecedor_id": p.fornecedor_id,
        "categoria_nome": p.categoria.nome if p.categoria else SEM_CATEGORIA,
        "fornecedor_nome": p.fornecedor.nome if p.fornecedor else SEM_FORNECEDOR,
        "ativo": p.ativo,
        "em_falta": p.em_falta,
    }


def _ref(s: Session, modelo, ref_id: str | None, clinica_id: str, campo: str) -> str | None:
    if not ref_id:
        return None
    obj = s.get(modelo, ref_id)
    if not obj or obj.clinica_id != clinica_id:
        raise ErroValidacao("Referência inválida", {campo: "Não encontrado"})
    return obj.id


def _dados_produto(s: Session, clinica_id: str, dados: dict[str, Any]) -> dict[str, Any]:
    # números vazios ou inválidos viram 0
    return {
        "nome": obrigatorio(dados.get("nome"), "nome"),
        "descricao": texto(dados.get("descricao")),
        "codigo_barras": texto(dados.get("codigo_barras")),
        "unidade_medida": texto(dados.get("unidade_medida")) or "unidade",
        "quantidade_atual": numero(dados.get("quantidade_atual")),
        "quantidade_minima": numero(dados.get("quantidade_minima")),
        "preco_custo": numero(dados.get("preco_custo")),
        "preco_venda": numero(dados.get("preco_venda")),
        "data_validade": data_ou_none(dados.get("data_validade"), "data_validade"),
        "lote": texto(dados.get("lote")),
        "categoria_id": _ref(s, CategoriaEstoque, texto(dados.get("categoria_id")), clinica_id, "categoria_id"),
        "fornecedor_id": _ref(s, Fornecedor, texto(dados.get("fornecedor_id")), clinica_id, "fornecedor_id"),
        "ativo": bool(dados.get("ativo", True)),
    }


def listar_produtos(
    db: Database, clinica_id: str, busca: str | None = None, somente_em_falta: bool = False
) -> list[dict[str, Any]]:
    q = (
        select(ProdutoEstoque)
        .options(joinedload(ProdutoEstoque.categoria), joinedload(ProdutoEstoque.fornecedor))
        .outerjoin(CategoriaEstoque, CategoriaEstoque.id == ProdutoEstoque.categoria_id)
        .where(ProdutoEstoque.clinica_id == clinica_id)
    )
    termo = texto(busca)
    if termo:
        like = f"%{termo}%"
        q = q.where(
            or_(
                ProdutoEstoque.nome.ilike(like),
                ProdutoEstoque.codigo_barras.ilike(like),
                CategoriaEstoque.nome.ilike(like),
            )
        )
    if somente_em_falta:
        q = q.where(ProdutoEstoque.quantidade_atual <= ProdutoEstoque.quantidade_minima)

    with db.session() as s:
        rows = s.scalars(q.order_by(ProdutoEstoque.nome.asc()))
        return [produto_flat(p) for p in rows]


def produtos_em_falta(db: Database, clinica_id: str) -> list[dict[str, Any]]:
    return listar_produtos(db, clinica_id, somente_em_falta=True)


def criar_produto(db: Database, clinica_id: str, dados: dict[str, Any]) -> dict[str, Any]:
    with db.session() as s:
        p = ProdutoEstoque(clinica_id=clinica_id, **_dados_produto(s, clinica_id, dados))
        s.add(p)
        s.flush()
        s.refresh(p)
        logger.info("produto_criado", clinica_id=clinica_id, produto_id=p.id)
        return produto_flat(p)


def atualizar_produto(db: Database, clinica_id: str, produto_id: str, dados: dict[str, Any]) -> dict[str, Any]:
    with db.session() as s:
        p = s.get(ProdutoEstoque, produto_id)
        if not p or p.clinica_id != clinica_id:
            raise NaoEncontrado("Produto não encontrado")
        for campo, valor in _dados_produto(s, clinica_id, dados).items():
            setattr(p, campo, valor)
        s.flush()
        s.refresh(p)
        logger.info("produto_atualizado", clinica_id=clinica_id, produto_id=p.id)
        return produto_flat(p)


def remover_produto(db: Database, clinica_id: str, produto_id: str) -> None:
    with db.session() as s:
        p = s.get(ProdutoEstoque, produto_id)
        if not p or p.clinica_id != clinica_id:
            raise NaoEncontrado("Produto não encontrado")
        s.delete(p)
        logger.info("produto_removido", clinica_id=clinica_id, produto_id=produto_id)


# =========================
# Categorias
# =========================
def listar_categorias(db: Database, clinica_id: str) -> list[dict[str, Any]]:
    with db.session() as s:
        rows = s.execute(
            select(CategoriaEstoque.id, CategoriaEstoque.nome)
            .where(CategoriaEstoque.clinica_id == clinica_id)
            .order_by(CategoriaEstoque.nome)
        ).all()
        return [{"id": r.id, "nome": r.nome} for r in rows]


def salvar_categoria(db: Database, clinica_id: str, nome: str, categoria_id: str | None = None) -> dict[str, Any]:
    nome = obrigatorio(nome, "nome")
    try:
        with db.session() as s:
            if categoria_id:
                c = s.get(CategoriaEstoque, categoria_id)
                if not c or c.clinica_id != clinica_id:
                    raise NaoEncontrado("Categoria não encontrada")
                c.nome = nome
            else:
                c = CategoriaEstoque(clinica_id=clinica_id, nome=nome)
                s.add(c)
            s.flush()
            logger.info("categoria_salva", clinica_id=clinica_id, categoria_id=c.id)
            return {"id": c.id, "nome": c.nome}
    except IntegrityError:
        raise ErroValidacao("Categoria já existe", {"nome": "Categoria já existe"})


def remover_categoria(db: Database, clinica_id: str, categoria_id: str) -> None:
    """Os produtos da categoria passam a aparecer como "Sem categoria"."""
    with db.session() as s:
        c = s.get(CategoriaEstoque, categoria_id)
        if not c or c.clinica_id != clinica_id:
            raise NaoEncontrado("Categoria não encontrada")
        for p in c.produtos:
            p.categoria_id = None
        s.delete(c)
        logger.info("categoria_removida", clinica_id=clinica_id, categoria_id=categoria_id)


# =========================
# Fornecedores
# =========================
def fornecedor_flat(f: Fornecedor) -> dict[str, Any]:
    return {"id": f.id, "nome": f.nome, "telefone": f.telefone, "email": f.email}


def listar_fornecedores(db: Database, clinica_id: str) -> list[dict[str, Any]]:
    with db.session() as s:
        rows = s.scalars(select(Fornecedor).where(Fornecedor.clinica_id == clinica_id).order_by(Fornecedor.nome))
        return [fornecedor_flat(f) for f in rows]


def salvar_fornecedor(
    db: Database, clinica_id: str, dados: dict[str, Any], fornecedor_id: str | None = None
) -> dict[str, Any]:
    valores = {
        "nome": obrigatorio(dados.get("nome"), "nome"),
        "telefone": texto(dados.get("telefone")),
        "email": email_ou_none(dados.get("email")),
    }
    with db.session() as s:
        if fornecedor_id:
            f = s.get(Fornecedor, fornecedor_id)
            if not f or f.clinica_id != clinica_id:
                raise NaoEncontrado("Fornecedor não encontrado")
            for campo, valor in valores.items():
                setattr(f, campo, valor)
        else:
            f = Fornecedor(clinica_id=clinica_id, **valores)
            s.add(f)
        s.flush()
        logger.info("fornecedor_salvo", clinica_id=clinica_id, fornecedor_id=f.id)
        return fornecedor_flat(f)


def remover_fornecedor(db: Database, clinica_id: str, fornecedor_id: str) -> None:
    with db.session() as s:
        f = s.get(Fornecedor, fornecedor_id)
        if not f or f.clinica_id != clinica_id:
            raise NaoEncontrado("Fornecedor não encontrado")
        for p in f.produtos:
            p.fornecedor_id = None
        s.delete(f)
        logger.info("fornecedor_removido", clinica_id=clinica_id, fornecedor_id=fornecedor_id)
