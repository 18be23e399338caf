# inventory_reconciler/db/connection.py
from typing import Literal

from sqlalchemy import create_engine
from supabase import create_client

from inventory_reconciler.config import Config
from inventory_reconciler.db.interface import StoreInterface, SupabaseStore, SqlAlchemyStore
from inventory_reconciler.exceptions import ConfigError

DatabaseType = Literal["postgresql", "supabase"]


def _create_supabase_store(config: Config) -> SupabaseStore:
    credentials = config.supabase_credentials
    if not credentials['url'] or not credentials['key']:
        raise ConfigError(
            "Missing SUPABASE_URL or SUPABASE_SERVICE_ROLE",
            code='MISSING_CREDENTIALS'
        )
    try:
        client = create_client(credentials['url'], credentials['key'])
    except Exception as e:
        raise ConfigError(f"Failed to create Supabase client: {str(e)}") from e
    return SupabaseStore(client)


def _create_sqlalchemy_store(config: Config) -> SqlAlchemyStore:
    url = config.database_url
    if not url:
        raise ConfigError("Missing DATABASE_URL for postgresql backend", code='MISSING_CREDENTIALS')
    engine = create_engine(
        url,
        pool_size=config.get_int('DATABASE', 'pool_size', 5),
        max_overflow=config.get_int('DATABASE', 'max_overflow', 10),
        pool_recycle=config.get_int('DATABASE', 'pool_recycle', 1800),
        pool_pre_ping=True,
        echo=config.get_boolean('DATABASE', 'echo', False)
    )
    return SqlAlchemyStore(engine)


def create_store(config: Config) -> StoreInterface:
    """Build the store handle for the configured backend.

    Called once at process start; the handle is passed into every job.

    Args:
        config: Configuration

    Returns:
        StoreInterface implementation

    Raises:
        ConfigError: If credentials are missing or the backend is unknown
    """
    db_type: DatabaseType = config.db_type
    if db_type == 'supabase':
        return _create_supabase_store(config)
    if db_type == 'postgresql':
        return _create_sqlalchemy_store(config)
    raise ConfigError(f"Unknown database type: {db_type}", code='UNKNOWN_BACKEND')
