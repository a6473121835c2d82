from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker


class Base(DeclarativeBase):
    """Base ORM de todos os modelos."""
    pass


def _sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """
    Handle do banco construído explicitamente na inicialização da aplicação
    e injetado nos serviços. `dispose()` no encerramento.
    """

    def __init__(self, url: str, echo: bool = False) -> None:
        connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
        self.url = url
        self.engine: Engine = create_engine(
            url,
            echo=echo,              # True para ver as queries
            future=True,
            connect_args=connect_args,
        )
        if url.startswith("sqlite"):
            # SQLite só aplica FKs (e ondelete) com o pragma ligado em cada conexão
            event.listen(self.engine, "connect", _sqlite_foreign_keys)
        self._factory = sessionmaker(
            bind=self.engine,
            autoflush=False,
            autocommit=False,
            future=True,
            expire_on_commit=False,
        )

    def create_all(self) -> None:
        """Cria as tabelas se não existirem."""
        # garante que todos os modelos estejam registrados no metadata
        from . import auth_models, models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    @contextmanager
    def session(self) -> Iterator[Session]:
        """
        Context manager da sessão:
        - commit se tudo ok
        - rollback em exceções
        - close sempre
        """
        session: Session = self._factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        self.engine.dispose()
