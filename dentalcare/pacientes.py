from __future__ import annotations

from datetime import date
from typing import Any

from sqlalchemy import or_, select

from .db import Database
from .errors import ErroValidacao, NaoEncontrado
from .logging_config import get_logger
from .models import Paciente, StatusPaciente
from .validacao import (
    data_ou_none,
    email_ou_none,
    idade,
    inteiro_ou_none,
    normalizar_cep,
    normalizar_cpf,
    obrigatorio,
    so_digitos,
    texto,
)

logger = get_logger(__name__)

MAIORIDADE = 18

CAMPOS_RESPONSAVEL = (
    "responsavel_nome",
    "responsavel_parentesco",
    "responsavel_telefone",
    "responsavel_cpf",
    "responsavel_rg",
    "responsavel_idade",
)
CAMPOS_CONVENIO = ("convenio_id", "plano_id", "numero_convenio", "validade_convenio")
CAMPOS_ENDERECO = ("cep", "logradouro", "numero", "complemento", "bairro", "cidade", "uf")


def e_menor(data_nascimento: date | None, hoje: date | None = None) -> bool:
    return data_nascimento is not None and idade(data_nascimento, hoje) < MAIORIDADE


def _endereco(bruto: Any) -> dict[str, Any] | None:
    if not bruto:
        return None
    end = {k: texto(bruto.get(k)) for k in CAMPOS_ENDERECO}
    end["cep"] = normalizar_cep(end["cep"]) or None
    if end["uf"]:
        end["uf"] = end["uf"].upper()[:2]
    if not any(end.values()):
        return None
    return end


def _status(dados: dict[str, Any]) -> StatusPaciente:
    if "status" in dados and dados["status"]:
        try:
            return StatusPaciente(str(dados["status"]))
        except ValueError:
            raise ErroValidacao("Status inválido", {"status": "Status inválido"})
    if dados.get("ativo") is False:
        return StatusPaciente.INATIVO
    return StatusPaciente.ATIVO


def normalizar_paciente(dados: dict[str, Any], hoje: date | None = None) -> dict[str, Any]:
    """
    Valida e normaliza o formulário do paciente.
    - responsável só para menores de idade
    - dados do convênio só quando tipo_atendimento = convenio
    """
    nome = obrigatorio(dados.get("nome"), "nome")
    nascimento = data_ou_none(dados.get("data_nascimento"), "data_nascimento")
    if nascimento is None:
        raise ErroValidacao("Obrigatório", {"data_nascimento": "Obrigatório"})

    nacionalidade = texto(dados.get("nacionalidade")) or "brasileira"
    documento_tipo = texto(dados.get("documento_tipo")) or "cpf"
    if nacionalidade not in ("brasileira", "estrangeira"):
        raise ErroValidacao("Nacionalidade inválida", {"nacionalidade": "Nacionalidade inválida"})
    if documento_tipo not in ("cpf", "passaporte"):
        raise ErroValidacao("Tipo de documento inválido", {"documento_tipo": "Tipo de documento inválido"})

    if documento_tipo == "cpf":
        cpf = normalizar_cpf(dados.get("cpf"))
    else:
        cpf = so_digitos(dados.get("cpf")) or None

    tipo_atendimento = texto(dados.get("tipo_atendimento")) or "particular"
    if tipo_atendimento not in ("particular", "convenio"):
        raise ErroValidacao("Tipo de atendimento inválido", {"tipo_atendimento": "Tipo de atendimento inválido"})

    out: dict[str, Any] = {
        "nome": nome,
        "data_nascimento": nascimento,
        "nacionalidade": nacionalidade,
        "documento_tipo": documento_tipo,
        "cpf": cpf,
        "rg": texto(dados.get("rg")),
        "passaporte": texto(dados.get("passaporte")),
        "sexo": texto(dados.get("sexo")),
        "telefone": texto(dados.get("telefone")),
        "celular": texto(dados.get("celular")),
        "email": email_ou_none(dados.get("email")),
        "endereco": _endereco(dados.get("endereco")),
        "tipo_atendimento": tipo_atendimento,
        "observacoes": texto(dados.get("observacoes")),
        "status": _status(dados),
        "ultima_visita": data_ou_none(dados.get("ultima_visita"), "ultima_visita"),
        "proxima_visita": data_ou_none(dados.get("proxima_visita"), "proxima_visita"),
    }

    if e_menor(nascimento, hoje):
        out["responsavel_nome"] = texto(dados.get("responsavel_nome"))
        out["responsavel_parentesco"] = texto(dados.get("responsavel_parentesco"))
        out["responsavel_telefone"] = texto(dados.get("responsavel_telefone"))
        out["responsavel_cpf"] = normalizar_cpf(dados.get("responsavel_cpf"), campo="responsavel_cpf")
        out["responsavel_rg"] = texto(dados.get("responsavel_rg"))
        out["responsavel_idade"] = inteiro_ou_none(dados.get("responsavel_idade"))
    else:
        out.update({k: None for k in CAMPOS_RESPONSAVEL})

    if tipo_atendimento == "convenio":
        out["convenio_id"] = texto(dados.get("convenio_id"))
        out["plano_id"] = texto(dados.get("plano_id"))
        out["numero_convenio"] = texto(dados.get("numero_convenio"))
        out["validade_convenio"] = data_ou_none(dados.get("validade_convenio"), "validade_convenio")
    else:
        out.update({k: None for k in CAMPOS_CONVENIO})

    return out


def _iso(d: date | None) -> str | None:
    return d.isoformat() if d else None


def paciente_flat(p: Paciente) -> dict[str, Any]:
    return {
        "id": p.id,
        "clinica_id": p.clinica_id,
        "nome": p.nome,
        "data_nascimento": _iso(p.data_nascimento),
        "nacionalidade": p.nacionalidade,
        "documento_tipo": p.documento_tipo,
        "cpf": p.cpf,
        "rg": p.rg,
        "passaporte": p.passaporte,
        "sexo": p.sexo,
        "telefone": p.telefone,
        "celular": p.celular,
        "email": p.email,
        "responsavel_nome": p.responsavel_nome,
        "responsavel_parentesco": p.responsavel_parentesco,
        "responsavel_telefone": p.responsavel_telefone,
        "responsavel_cpf": p.responsavel_cpf,
        "responsavel_rg": p.responsavel_rg,
        "responsavel_idade": p.responsavel_idade,
        "endereco": p.endereco,
        "tipo_atendimento": p.tipo_atendimento,
        "convenio_id": p.convenio_id,
        "plano_id": p.plano_id,
        "numero_convenio": p.numero_convenio,
        "validade_convenio": _iso(p.validade_convenio),
        "observacoes": p.observacoes,
        "status": p.status.value,
        "ultima_visita": _iso(p.ultima_visita),
        "proxima_visita": _iso(p.proxima_visita),
        "created_at": p.created_at.isoformat() if p.created_at else None,
    }


def listar(db: Database, clinica_id: str, busca: str | None = None) -> list[dict[str, Any]]:
    q = select(Paciente).where(Paciente.clinica_id == clinica_id)
    termo = texto(busca)
    if termo:
        like = f"%{termo}%"
        condicoes = [
            Paciente.nome.ilike(like),
            Paciente.email.ilike(like),
            Paciente.telefone.ilike(like),
            Paciente.cpf.ilike(like),
        ]
        digitos = so_digitos(termo)
        if digitos and digitos != termo:
            condicoes.append(Paciente.cpf.like(f"%{digitos}%"))
        q = q.where(or_(*condicoes))

    with db.session() as s:
        rows = s.scalars(q.order_by(Paciente.created_at.desc()))
        return [paciente_flat(p) for p in rows]


def obter(db: Database, clinica_id: str, paciente_id: str) -> dict[str, Any]:
    with db.session() as s:
        p = s.get(Paciente, paciente_id)
        if not p or p.clinica_id != clinica_id:
            raise NaoEncontrado("Paciente não encontrado")
        return paciente_flat(p)


def criar(db: Database, clinica_id: str, dados: dict[str, Any]) -> dict[str, Any]:
    valores = normalizar_paciente(dados)
    with db.session() as s:
        p = Paciente(clinica_id=clinica_id, **valores)
        s.add(p)
        s.flush()
        logger.info("paciente_criado", clinica_id=clinica_id, paciente_id=p.id)
        return paciente_flat(p)


def atualizar(db: Database, clinica_id: str, paciente_id: str, dados: dict[str, Any]) -> dict[str, Any]:
    valores = normalizar_paciente(dados)
    with db.session() as s:
        p = s.get(Paciente, paciente_id)
        if not p or p.clinica_id != clinica_id:
            raise NaoEncontrado("Paciente não encontrado")
        for campo, valor in valores.items():
            setattr(p, campo, valor)
        s.flush()
        logger.info("paciente_atualizado", clinica_id=clinica_id, paciente_id=p.id)
        return paciente_flat(p)


def remover(db: Database, clinica_id: str, paciente_id: str) -> None:
    with db.session() as s:
        p = s.get(Paciente, paciente_id)
        if not p or p.clinica_id != clinica_id:
            raise NaoEncontrado("Paciente não encontrado")
        s.delete(p)
        logger.info("paciente_removido", clinica_id=clinica_id, paciente_id=paciente_id)
