"""Database initialization and persistence layer."""

from brew_resolver.db.engine import (
    create_db_engine,
    get_database_url,
    get_engine,
    get_session,
    get_session_factory,
    init_db,
    reset_engine,
    run_migrations,
)
from brew_resolver.db.models import Base, BeerDB, BreweryDB, RatingDB, ReviewDB
from brew_resolver.db.repositories import BeerRepository, BreweryRepository, ReviewRepository

__all__ = [
    # Engine
    "create_db_engine",
    "get_database_url",
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_db",
    "reset_engine",
    "run_migrations",
    # Models
    "Base",
    "BreweryDB",
    "BeerDB",
    "ReviewDB",
    "RatingDB",
    # Repositories
    "BreweryRepository",
    "BeerRepository",
    "ReviewRepository",
]
