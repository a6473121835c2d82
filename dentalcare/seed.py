from __future__ import annotations

from sqlalchemy import select

from .auth_models import PermissoesUsuario, StatusUsuario, TipoUsuario, Usuario
from .auth_security import hash_password
from .convenios import seed_convenios
from .db import Database
from .logging_config import get_logger
from .models import CategoriaEstoque, Clinica, Fornecedor, ProdutoEstoque, Profissional, Servico
from .permissoes import Permissoes

logger = get_logger(__name__)

DEMO_EMAIL = "master@demo.dentalcare"
DEMO_SENHA = "Demo@1234"


def seed_base(db: Database) -> None:
    """Dados globais mínimos (idempotente): catálogo de convênios."""
    seed_convenios(db)


def seed_demo(db: Database) -> str:
    """
    Clínica de demonstração (idempotente):
    - master ativo (DEMO_EMAIL / DEMO_SENHA)
    - profissionais, serviços e alguns itens de estoque
    Retorna o id da clínica.
    """
    with db.session() as s:
        existente = s.execute(select(Usuario).where(Usuario.email == DEMO_EMAIL)).scalar_one_or_none()
        if existente is not None:
            return existente.clinica_id

        clinica = Clinica(nome="Clínica Demo")
        s.add(clinica)
        s.flush()

        master = Usuario(
            clinica_id=clinica.id,
            nome="Master Demo",
            email=DEMO_EMAIL,
            password_hash=hash_password(DEMO_SENHA),
            tipo=TipoUsuario.MASTER,
            status=StatusUsuario.ATIVO,
        )
        s.add(master)
        s.flush()
        linha = PermissoesUsuario(usuario_id=master.id)
        Permissoes.todas().aplicar_em(linha)
        s.add(linha)

        # Profissionais
        profissionais = [
            ("Dra. Ana Souza", "CRO-SP 12345", "Ortodontia", 30.0),
            ("Dr. Bruno Lima", "CRO-SP 54321", "Endodontia", 35.0),
        ]
        for nome, conselho, especialidade, comissao in profissionais:
            s.add(
                Profissional(
                    clinica_id=clinica.id,
                    nome=nome,
                    conselho=conselho,
                    especialidade=especialidade,
                    comissao_padrao_percent=comissao,
                )
            )

        # Serviços
        servicos = [
            ("Limpeza", 150.0, 40),
            ("Restauração", 250.0, 60),
            ("Canal", 900.0, 90),
        ]
        for nome, preco, duracao in servicos:
            s.add(Servico(clinica_id=clinica.id, nome=nome, preco_base=preco, duracao_min=duracao))

        # Estoque
        categoria = CategoriaEstoque(clinica_id=clinica.id, nome="Descartáveis")
        fornecedor = Fornecedor(clinica_id=clinica.id, nome="Dental Supply", telefone="(11) 4000-0000")
        s.add_all([categoria, fornecedor])
        s.flush()

        s.add(
            ProdutoEstoque(
                clinica_id=clinica.id,
                nome="Luvas de procedimento",
                unidade_medida="caixa",
                quantidade_atual=2,
                quantidade_minima=5,
                categoria_id=categoria.id,
                fornecedor_id=fornecedor.id,
            )
        )
        s.add(
            ProdutoEstoque(
                clinica_id=clinica.id,
                nome="Sugador descartável",
                unidade_medida="pacote",
                quantidade_atual=20,
                quantidade_minima=5,
                categoria_id=categoria.id,
            )
        )

        logger.info("demo_criada", clinica_id=clinica.id)
        return clinica.id
