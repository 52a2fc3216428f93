from __future__ import annotations

from collections.abc import Generator, Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, text
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from salesflow.core.config import get_settings


class Base(DeclarativeBase):
    pass


settings = get_settings()

engine = create_engine(settings.database_url, pool_pre_ping=True, future=True)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


def get_db() -> Generator[Session, None, None]:
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@contextmanager
def transaction(session: Session) -> Iterator[Session]:
    """Run a unit of work that commits once or not at all.

    On PostgreSQL the statement timeout is scoped to the transaction, so a
    timeout aborts the whole unit and rolls it back.
    """
    try:
        bind = session.get_bind()
        if bind.dialect.name == "postgresql":
            timeout_ms = int(get_settings().transaction_timeout_seconds * 1000)
            session.execute(text(f"SET LOCAL statement_timeout = {timeout_ms}"))
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
