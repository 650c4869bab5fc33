"""Database engine and session management."""

import os
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

# Default SQLite file when DATABASE_URL is not set
DEFAULT_DB_PATH = Path.home() / ".brew_resolver" / "brew_resolver.db"


def get_database_url(db_path: Path | str | None = None) -> str:
    """
    Resolve the database URL.

    Args:
        db_path: Optional path to a SQLite file. If None, uses the
                 DATABASE_URL env var (any SQLAlchemy URL or a bare path)
                 or the default path.

    Returns:
        SQLAlchemy connection URL.
    """
    if db_path is None:
        url = os.environ.get("DATABASE_URL")
        if url and "://" in url:
            return url
        path = Path(url) if url else DEFAULT_DB_PATH
    else:
        path = Path(db_path)

    path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{path}"


def create_db_engine(db_path: Path | str | None = None, echo: bool = False) -> Engine:
    """
    Create a SQLAlchemy engine.

    SQLite engines allow access from worker threads, since the pipeline
    runs blocking database calls off the event loop.
    """
    url = get_database_url(db_path)
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, echo=echo, connect_args=connect_args, pool_pre_ping=True)


_engine: Engine | None = None
_SessionLocal: sessionmaker[Session] | None = None


def get_engine(db_path: Path | str | None = None, echo: bool = False) -> Engine:
    """Get or create the global database engine."""
    global _engine
    if _engine is None:
        _engine = create_db_engine(db_path, echo)
    return _engine


def get_session_factory(db_path: Path | str | None = None) -> sessionmaker[Session]:
    """Get or create the global session factory."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(
            autocommit=False, autoflush=False, expire_on_commit=False, bind=get_engine(db_path)
        )
    return _SessionLocal


def reset_engine() -> None:
    """Reset the global engine and session factory (useful for testing)."""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None


@contextmanager
def get_session(db_path: Path | str | None = None) -> Generator[Session, None, None]:
    """
    Context manager for database sessions.

    Usage:
        with get_session() as session:
            BreweryRepository(session).create(record)
            session.commit()

    Uncommitted work is rolled back when the block raises.
    """
    session = get_session_factory(db_path)()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(db_path: Path | str | None = None) -> None:
    """
    Create all tables.

    Note: In production, use Alembic migrations instead.
    """
    from brew_resolver.db.models import Base

    Base.metadata.create_all(bind=get_engine(db_path))


def run_migrations(db_path: Path | str | None = None) -> None:
    """Run Alembic migrations to the latest revision."""
    alembic_ini = Path(__file__).resolve().parents[2] / "alembic.ini"
    if not alembic_ini.exists():
        raise FileNotFoundError(f"Alembic config not found: {alembic_ini}")

    config = Config(str(alembic_ini))
    config.set_main_option("script_location", str(Path(__file__).parent / "migrations"))
    config.set_main_option("sqlalchemy.url", get_database_url(db_path))
    command.upgrade(config, "head")
