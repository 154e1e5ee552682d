"""rbac-authority - role-based access control over a relational store."""

from rbac_authority.config import Config
from rbac_authority.exceptions import (
    AuthorityError,
    ConfigError,
    ConflictError,
    ConstraintViolationError,
    NotFoundError,
    PermissionInUseError,
    PermissionNotFoundError,
    RoleAlreadyAssignedError,
    RoleInUseError,
    RoleNotFoundError,
    RolePermissionNotFoundError,
    StorageError,
    UserRoleNotFoundError,
)
from rbac_authority.factory import create_authority, create_database
from rbac_authority.observability import LogLevel, configure_logging, get_logger
from rbac_authority.rbac import Authority, Permission, Role, RolePermission, UserRole

__version__ = "0.1.0"
__all__ = [
    # Core
    "Authority",
    "Config",
    "create_authority",
    "create_database",
    # Records
    "Permission",
    "Role",
    "RolePermission",
    "UserRole",
    # Errors
    "AuthorityError",
    "ConfigError",
    "ConflictError",
    "ConstraintViolationError",
    "NotFoundError",
    "PermissionInUseError",
    "PermissionNotFoundError",
    "RoleAlreadyAssignedError",
    "RoleInUseError",
    "RoleNotFoundError",
    "RolePermissionNotFoundError",
    "StorageError",
    "UserRoleNotFoundError",
    # Observability
    "LogLevel",
    "configure_logging",
    "get_logger",
]
