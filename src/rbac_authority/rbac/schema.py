"""RBAC table bootstrap."""

from pathlib import Path

from rbac_authority.protocols.database import Database
from rbac_authority.rbac.store import TableNames

SCHEMA_PATH = Path(__file__).parent / "schema.sql"


def schema_statements(tables: TableNames) -> list[str]:
    """Render the schema for a table prefix, one statement per item."""
    schema = SCHEMA_PATH.read_text().format(prefix=tables.prefix)
    return [s.strip() for s in schema.split(";") if s.strip()]


async def initialize_schema(database: Database, tables: TableNames) -> None:
    """Create the RBAC tables and indexes if they don't exist.

    Args:
        database: Database backend
        tables: Physical table names
    """
    # Execute each statement separately
    for statement in schema_statements(tables):
        await database.execute(statement)
