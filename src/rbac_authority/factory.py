"""Factory functions for building an authority from configuration."""

from rbac_authority.config import Config, DatabaseStorageConfig
from rbac_authority.exceptions import ConfigError
from rbac_authority.observability import configure_logging
from rbac_authority.protocols import Database
from rbac_authority.rbac.authority import Authority


def create_database(config: DatabaseStorageConfig) -> Database:
    """Create a database backend from configuration.

    Args:
        config: Database storage settings

    Returns:
        Configured database backend

    Raises:
        ConfigError: If the backend is unknown or misconfigured
    """
    if config.backend == "sqlite":
        from rbac_authority.backends.database.sqlite import SQLiteDatabase

        return SQLiteDatabase(path=config.path)

    elif config.backend == "d1":
        from rbac_authority.backends.database.cloudflare_d1 import CloudflareD1Database

        try:
            return CloudflareD1Database(
                account_id=config.account_id,
                database_id=config.database_id,
                api_token=config.api_token,
                timeout_seconds=config.timeout_seconds,
            )
        except ValueError as e:
            raise ConfigError(str(e)) from e

    else:
        raise ConfigError(f"Unknown database backend: {config.backend}. Use 'sqlite' or 'd1'.")


async def create_authority(config: Config, database: Database | None = None) -> Authority:
    """Create an authority with its tables in place.

    Args:
        config: Application configuration
        database: Database to use instead of the configured backend

    Returns:
        Authority bound to one database and table prefix
    """
    configure_logging(config.logging.level, config.logging.format)

    if database is None:
        database = create_database(config.storage.database)

    authority = Authority(database, tables_prefix=config.tables_prefix)
    await authority.initialize_schema()
    return authority
