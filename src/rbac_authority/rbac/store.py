"""Table-level record access for the RBAC tables.

``RecordStore`` is the only place that builds SQL for the authority. It
supports the handful of shapes the domain needs: existence checks,
single- and multi-row selects, inserts and deletes, all with equality or
membership predicates on known columns.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from rbac_authority.exceptions import ConfigError
from rbac_authority.protocols.database import Database, Row
from rbac_authority.utils.validation import validate_table_prefix


class Table(str, Enum):
    """Logical RBAC tables."""

    ROLES = "roles"
    PERMISSIONS = "permissions"
    ROLE_PERMISSIONS = "role_permissions"
    USER_ROLES = "user_roles"


COLUMNS: dict[Table, tuple[str, ...]] = {
    Table.ROLES: ("id", "name", "title"),
    Table.PERMISSIONS: ("id", "name", "title"),
    Table.ROLE_PERMISSIONS: ("id", "role_id", "permission_id"),
    Table.USER_ROLES: ("id", "user_id", "role_id"),
}

_COLLECTION_TYPES = (list, tuple, set, frozenset)


@dataclass(frozen=True)
class TableNames:
    """Physical table names for one table prefix."""

    prefix: str = ""

    @classmethod
    def with_prefix(cls, prefix: str) -> "TableNames":
        """Build table names for a prefix.

        Raises:
            ConfigError: If the prefix is not a safe SQL identifier fragment
        """
        try:
            return cls(prefix=validate_table_prefix(prefix))
        except ValueError as e:
            raise ConfigError(str(e)) from e

    def __getitem__(self, table: Table) -> str:
        return f"{self.prefix}{table.value}"


class RecordStore:
    """Parameterized CRUD over the four RBAC tables."""

    def __init__(self, database: Database, tables: TableNames) -> None:
        """Initialize the record store.

        Args:
            database: Database backend
            tables: Physical table names
        """
        self.database = database
        self.tables = tables

    @staticmethod
    def _check_columns(table: Table, columns: Any) -> None:
        unknown = [c for c in columns if c not in COLUMNS[table]]
        if unknown:
            raise ValueError(f"Unknown column(s) for {table.value}: {', '.join(unknown)}")

    def _where(
        self, table: Table, where: dict[str, Any]
    ) -> tuple[str, dict[str, Any]] | None:
        """Build a WHERE clause.

        Returns:
            The clause (empty when unconstrained) and its params, or None
            if an empty membership predicate makes the match impossible.
        """
        self._check_columns(table, where)

        clauses: list[str] = []
        params: dict[str, Any] = {}
        for column, value in where.items():
            if isinstance(value, _COLLECTION_TYPES):
                values = list(value)
                if not values:
                    return None
                names = [f"{column}_{i}" for i in range(len(values))]
                placeholders = ", ".join(f":{name}" for name in names)
                clauses.append(f"{column} IN ({placeholders})")
                params.update(zip(names, values))
            else:
                clauses.append(f"{column} = :{column}")
                params[column] = value

        if not clauses:
            return "", params
        return " WHERE " + " AND ".join(clauses), params

    async def exists(self, table: Table, **where: Any) -> bool:
        """Check whether any row matches."""
        predicate = self._where(table, where)
        if predicate is None:
            return False
        clause, params = predicate

        rows = await self.database.execute(
            f"SELECT 1 AS found FROM {self.tables[table]}{clause} LIMIT 1",
            params,
        )
        return bool(rows)

    async def select_one(self, table: Table, **where: Any) -> Row | None:
        """Fetch the first matching row, or None if nothing matches."""
        predicate = self._where(table, where)
        if predicate is None:
            return None
        clause, params = predicate

        columns = ", ".join(COLUMNS[table])
        rows = await self.database.execute(
            f"SELECT {columns} FROM {self.tables[table]}{clause} ORDER BY id LIMIT 1",
            params,
        )
        return rows[0] if rows else None

    async def select_many(self, table: Table, **where: Any) -> list[Row]:
        """Fetch all matching rows in id order."""
        predicate = self._where(table, where)
        if predicate is None:
            return []
        clause, params = predicate

        columns = ", ".join(COLUMNS[table])
        return await self.database.execute(
            f"SELECT {columns} FROM {self.tables[table]}{clause} ORDER BY id",
            params,
        )

    async def insert(self, table: Table, record: dict[str, Any]) -> int:
        """Insert a row and return its id."""
        if not record:
            raise ValueError("Cannot insert an empty record")
        self._check_columns(table, record)

        columns = ", ".join(record)
        placeholders = ", ".join(f":{column}" for column in record)
        rows = await self.database.execute(
            f"INSERT INTO {self.tables[table]} ({columns}) VALUES ({placeholders}) RETURNING id",
            record,
        )
        return int(rows[0].id)

    async def delete(self, table: Table, **where: Any) -> int:
        """Delete matching rows and return how many were removed.

        Raises:
            ValueError: If no predicate is given
        """
        if not where:
            raise ValueError("Refusing to delete without a predicate")

        predicate = self._where(table, where)
        if predicate is None:
            return 0
        clause, params = predicate

        rows = await self.database.execute(
            f"DELETE FROM {self.tables[table]}{clause} RETURNING id",
            params,
        )
        return len(rows)
