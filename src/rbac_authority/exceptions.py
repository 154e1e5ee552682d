"""RBAC authority exceptions."""


class AuthorityError(Exception):
    """Base exception for rbac-authority."""

    pass


class ConfigError(AuthorityError):
    """Configuration error."""

    pass


class NotFoundError(AuthorityError):
    """A lookup by name or relation matched no row."""

    pass


class RoleNotFoundError(NotFoundError):
    """Role not found."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Role not found: {name}")


class PermissionNotFoundError(NotFoundError):
    """Permission not found."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Permission not found: {name}")


class RolePermissionNotFoundError(NotFoundError):
    """Permission is not linked to the role."""

    def __init__(self, role_id: int, permission_id: int) -> None:
        self.role_id = role_id
        self.permission_id = permission_id
        super().__init__(
            f"Permission {permission_id} for role {role_id} not found"
        )


class UserRoleNotFoundError(NotFoundError):
    """Role is not assigned to the user."""

    def __init__(self, user_id: int, role_id: int) -> None:
        self.user_id = user_id
        self.role_id = role_id
        super().__init__(f"Role {role_id} for user {user_id} not found")


class ConflictError(AuthorityError):
    """Operation conflicts with existing assignments."""

    pass


class RoleAlreadyAssignedError(ConflictError):
    """The user already holds the role."""

    def __init__(self, user_id: int, role_name: str) -> None:
        self.user_id = user_id
        self.role_name = role_name
        super().__init__(f"Role '{role_name}' is already assigned to user {user_id}")


class RoleInUseError(ConflictError):
    """Role is still assigned to at least one user."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Cannot delete assigned role: {name}")


class PermissionInUseError(ConflictError):
    """Permission is still granted by at least one role."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Cannot delete assigned permission: {name}")


class StorageError(AuthorityError):
    """Storage backend error."""

    pass


class ConstraintViolationError(StorageError):
    """A storage-level constraint rejected the statement.

    ``kind`` is one of ``unique``, ``foreign_key``, ``not_null``, ``check``
    or ``other``.
    """

    KINDS = {
        "UNIQUE": "unique",
        "FOREIGN KEY": "foreign_key",
        "NOT NULL": "not_null",
        "CHECK": "check",
    }

    def __init__(self, kind: str, message: str) -> None:
        self.kind = kind
        super().__init__(message)

    @classmethod
    def from_message(cls, message: str) -> "ConstraintViolationError":
        """Classify a SQLite-style constraint message.

        Args:
            message: Error text, e.g. "UNIQUE constraint failed: roles.name"

        Returns:
            Error with the matching kind
        """
        upper = message.upper()
        for marker, kind in cls.KINDS.items():
            if f"{marker} CONSTRAINT FAILED" in upper:
                return cls(kind, message)
        return cls("other", message)

    @staticmethod
    def is_constraint_message(message: str) -> bool:
        """Check whether an error message reports a failed constraint."""
        upper = message.upper()
        return "CONSTRAINT FAILED" in upper or "SQLITE_CONSTRAINT" in upper
