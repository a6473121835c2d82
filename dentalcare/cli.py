from __future__ import annotations

import argparse

from sqlalchemy import select

from . import cadastros, estoque, pacientes
from .auth_models import Usuario
from .auth_security import TokenCodec
from .auth_service import cadastrar, confirmar_email
from .config import load_settings
from .db import Database
from .errors import ErroAutenticacao, ErroValidacao
from .logging_config import configure_logging
from .models import Clinica
from .seed import DEMO_EMAIL, DEMO_SENHA, seed_base, seed_demo


def _clinica_id(db: Database, args: argparse.Namespace) -> str:
    """Clínica informada em --clinica-id, ou a única cadastrada."""
    if args.clinica_id:
        return args.clinica_id
    with db.session() as s:
        ids = list(s.scalars(select(Clinica.id)))
    if len(ids) != 1:
        raise SystemExit("Informe --clinica-id (há %d clínicas cadastradas)." % len(ids))
    return ids[0]


def cmd_init(db: Database, args: argparse.Namespace) -> None:
    seed_base(db)
    print("Banco inicializado e convênios carregados.")
    if args.demo:
        clinica_id = seed_demo(db)
        print(f"Clínica demo: {clinica_id} (login {DEMO_EMAIL} / {DEMO_SENHA})")


def cmd_create_clinic(db: Database, args: argparse.Namespace) -> None:
    settings = load_settings()
    tokens = TokenCodec(settings.jwt_secret, settings.jwt_expire_minutes)
    r = cadastrar(
        db,
        tokens,
        nome_clinica=args.clinica,
        nome=args.nome,
        email=args.email,
        password=args.senha,
        confirmacao=args.senha,
    )
    print(f"Clínica criada: {r.clinica_id}")
    print(f"Master: {r.usuario_id}")
    if args.confirmar:
        confirmar_email(db, tokens, r.token_confirmacao)
        print("E-mail confirmado.")
    else:
        print(f"Token de confirmação: {r.token_confirmacao}")


def cmd_list(db: Database, args: argparse.Namespace) -> None:
    if args.entity == "clinicas":
        with db.session() as s:
            for c in s.scalars(select(Clinica).order_by(Clinica.created_at)):
                print(f"{c.id} | {c.nome}")
        return

    if args.entity == "usuarios":
        with db.session() as s:
            q = select(Usuario).order_by(Usuario.created_at)
            if args.clinica_id:
                q = q.where(Usuario.clinica_id == args.clinica_id)
            for u in s.scalars(q):
                print(f"{u.id} | {u.nome} | {u.email} | {u.tipo.value} | {u.status.value}")
        return

    clinica_id = _clinica_id(db, args)
    if args.entity == "pacientes":
        for p in pacientes.listar(db, clinica_id):
            print(f"{p['id']} | {p['nome']} | {p['cpf'] or '-'} | {p['status']}")
    elif args.entity == "profissionais":
        for p in cadastros.listar_profissionais(db, clinica_id):
            print(f"{p['id']} | {p['nome']} | {p['especialidade'] or '-'}")
    elif args.entity == "servicos":
        for sv in cadastros.listar_servicos(db, clinica_id):
            print(f"{sv['id']} | {sv['nome']} | R$ {sv['preco_base']:.2f}")
    elif args.entity == "estoque":
        for p in estoque.listar_produtos(db, clinica_id):
            print(f"{p['id']} | {p['nome']} | {p['quantidade_atual']:g} {p['unidade_medida']} | {p['categoria_nome']}")


def cmd_add_patient(db: Database, args: argparse.Namespace) -> None:
    clinica_id = _clinica_id(db, args)
    p = pacientes.criar(
        db,
        clinica_id,
        {
            "nome": args.nome,
            "data_nascimento": args.nascimento,
            "cpf": args.cpf,
            "email": args.email,
            "telefone": args.telefone,
        },
    )
    print(f"Paciente criado: {p['id']}")


def cmd_low_stock(db: Database, args: argparse.Namespace) -> None:
    clinica_id = _clinica_id(db, args)
    itens = estoque.produtos_em_falta(db, clinica_id)
    if not itens:
        print("Nenhum produto em falta.")
        return
    for p in itens:
        print(f"{p['nome']} | atual {p['quantidade_atual']:g} | mínimo {p['quantidade_minima']:g} | {p['fornecedor_nome']}")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="dentalcare", description="CLI DentalCare Pro (administração local)")
    sub = p.add_subparsers(required=True)

    p_init = sub.add_parser("init", help="Cria o banco e carrega os convênios")
    p_init.add_argument("--demo", action="store_true", help="Cria também uma clínica de demonstração")
    p_init.set_defaults(func=cmd_init)

    p_clinic = sub.add_parser("create-clinic", help="Cadastra clínica + usuário master")
    p_clinic.add_argument("--clinica", required=True)
    p_clinic.add_argument("--nome", required=True)
    p_clinic.add_argument("--email", required=True)
    p_clinic.add_argument("--senha", required=True)
    p_clinic.add_argument("--confirmar", action="store_true", help="Confirma o e-mail imediatamente")
    p_clinic.set_defaults(func=cmd_create_clinic)

    p_list = sub.add_parser("list", help="Lista entidades")
    p_list.add_argument("entity", choices=["clinicas", "usuarios", "pacientes", "profissionais", "servicos", "estoque"])
    p_list.add_argument("--clinica-id", default=None)
    p_list.set_defaults(func=cmd_list)

    p_addp = sub.add_parser("add-patient", help="Cadastra paciente")
    p_addp.add_argument("--clinica-id", default=None)
    p_addp.add_argument("--nome", required=True)
    p_addp.add_argument("--nascimento", required=True, help="AAAA-MM-DD ou DD/MM/AAAA")
    p_addp.add_argument("--cpf", default=None)
    p_addp.add_argument("--email", default=None)
    p_addp.add_argument("--telefone", default=None)
    p_addp.set_defaults(func=cmd_add_patient)

    p_low = sub.add_parser("low-stock", help="Produtos com estoque no mínimo ou abaixo")
    p_low.add_argument("--clinica-id", default=None)
    p_low.set_defaults(func=cmd_low_stock)

    return p


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = load_settings()
    configure_logging(settings)
    db = Database(settings.database_url)
    db.create_all()  # garante as tabelas
    try:
        args.func(db, args)
    except (ErroValidacao, ErroAutenticacao) as e:
        campos = getattr(e, "campos", None)
        detalhe = f" {campos}" if campos else ""
        raise SystemExit(f"Erro: {e}{detalhe}")
    finally:
        db.dispose()


if __name__ == "__main__":
    main()
