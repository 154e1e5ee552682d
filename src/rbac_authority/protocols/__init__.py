"""Protocol interfaces for pluggable backends."""

from rbac_authority.protocols.database import Database, Row, bind_named_params

__all__ = [
    "Database",
    "Row",
    "bind_named_params",
]
