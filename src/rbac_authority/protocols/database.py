"""Database protocol for SQL backends."""

import re
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass, field
from typing import Any, Protocol

NAMED_PARAM_RE = re.compile(r"(?<!:):(\w+)")


@dataclass
class Row:
    """Type-safe row access with attribute-style access."""

    _data: dict[str, Any] = field(repr=False)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            return object.__getattribute__(self, name)
        try:
            return self._data[name]
        except KeyError:
            raise AttributeError(f"Row has no column '{name}'") from None

    def __getitem__(self, key: str) -> Any:
        return self._data[key]


def bind_named_params(
    query: str,
    params: dict[str, Any] | None,
) -> tuple[str, tuple[Any, ...]]:
    """Rewrite ``:name`` placeholders to positional ``?`` placeholders.

    Values are ordered by placeholder occurrence, so a name used twice is
    bound twice.

    Args:
        query: SQL with ``:name`` placeholders
        params: Values keyed by placeholder name

    Returns:
        The rewritten query and the positional values

    Raises:
        KeyError: If a placeholder has no value
    """
    if not params:
        return query, ()

    names: list[str] = []

    def replace(match: re.Match[str]) -> str:
        names.append(match.group(1))
        return "?"

    rewritten = NAMED_PARAM_RE.sub(replace, query)
    return rewritten, tuple(params[name] for name in names)


class Database(Protocol):
    """Protocol for SQL database backends (SQLite, D1)."""

    async def execute(
        self,
        query: str,
        params: dict[str, Any] | None = None,
    ) -> list[Row]:
        """Execute a query and return results."""
        ...

    async def execute_many(
        self,
        query: str,
        params_list: list[dict[str, Any]],
    ) -> None:
        """Execute a query multiple times with different parameters."""
        ...

    def transaction(self) -> AbstractAsyncContextManager["Database"]:
        """Start a transaction. Commits on exit, rolls back on exception."""
        ...

    async def close(self) -> None:
        """Release backend resources."""
        ...
