"""RBAC (Role-Based Access Control) module."""

from rbac_authority.rbac.authority import Authority
from rbac_authority.rbac.models import Permission, Role, RolePermission, UserRole
from rbac_authority.rbac.store import RecordStore, Table, TableNames

__all__ = [
    "Authority",
    "Permission",
    "RecordStore",
    "Role",
    "RolePermission",
    "Table",
    "TableNames",
    "UserRole",
]
