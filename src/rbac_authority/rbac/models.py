"""RBAC record types."""

from dataclasses import dataclass

from rbac_authority.protocols.database import Row


@dataclass
class Role:
    """A named collection of permissions assignable to users."""

    id: int
    name: str
    title: str | None = None

    @classmethod
    def from_row(cls, row: Row) -> "Role":
        return cls(id=row.id, name=row.name, title=row.title)


@dataclass
class Permission:
    """A named capability granted through roles."""

    id: int
    name: str
    title: str | None = None

    @classmethod
    def from_row(cls, row: Row) -> "Permission":
        return cls(id=row.id, name=row.name, title=row.title)


@dataclass
class RolePermission:
    """Link: role grants permission."""

    id: int
    role_id: int
    permission_id: int

    @classmethod
    def from_row(cls, row: Row) -> "RolePermission":
        return cls(id=row.id, role_id=row.role_id, permission_id=row.permission_id)


@dataclass
class UserRole:
    """Link: user holds role. ``user_id`` is an external identity."""

    id: int
    user_id: int
    role_id: int

    @classmethod
    def from_row(cls, row: Row) -> "UserRole":
        return cls(id=row.id, user_id=row.user_id, role_id=row.role_id)
