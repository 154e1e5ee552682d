"""RBAC authority: roles, permissions and their assignments."""

from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager

from rbac_authority.exceptions import (
    ConstraintViolationError,
    PermissionInUseError,
    PermissionNotFoundError,
    RoleAlreadyAssignedError,
    RoleInUseError,
    RoleNotFoundError,
    RolePermissionNotFoundError,
    UserRoleNotFoundError,
)
from rbac_authority.observability import OperationContext, Timer, get_logger
from rbac_authority.protocols import Database
from rbac_authority.rbac.models import Permission, Role, RolePermission, UserRole
from rbac_authority.rbac.schema import initialize_schema
from rbac_authority.rbac.store import RecordStore, Table, TableNames
from rbac_authority.utils.validation import validate_name, validate_user_id

logger = get_logger(__name__)


class Authority:
    """Gateway for every RBAC mutation and query.

    Holds no state besides its storage handle. Each public operation runs
    as one read-validate-write sequence inside a single database
    transaction; uniqueness of links is also backed by unique indexes, and
    a violation of those is mapped to the matching domain outcome.
    """

    def __init__(self, database: Database, tables_prefix: str = "") -> None:
        """Initialize the authority.

        Args:
            database: Database backend
            tables_prefix: Prefix applied to all four RBAC table names

        Raises:
            ConfigError: If the prefix is not a safe identifier fragment
        """
        self.database = database
        self.tables = TableNames.with_prefix(tables_prefix)
        self.store = RecordStore(database, self.tables)

    async def initialize_schema(self) -> None:
        """Create the RBAC tables if they don't exist."""
        await initialize_schema(self.database, self.tables)

    async def close(self) -> None:
        """Close the underlying database."""
        await self.database.close()

    @asynccontextmanager
    async def _operation(
        self, name: str, user_id: int | None = None
    ) -> AsyncIterator[RecordStore]:
        """Run one public operation in a transaction with logging context."""
        async with OperationContext(name, user_id=user_id):
            with Timer() as timer:
                try:
                    async with self.database.transaction():
                        yield self.store
                except Exception as e:
                    logger.debug(f"{name} failed", error=e, duration_ms=timer.duration_ms)
                    raise
            logger.debug(f"{name} completed", duration_ms=timer.duration_ms)

    # Creation

    async def create_role(self, name: str, title: str | None = None) -> Role:
        """Create a role unless one with that name exists.

        Args:
            name: Unique role name
            title: Optional human-readable title

        Returns:
            The new role, or the existing one (its title is left unchanged)

        Raises:
            ValueError: If the name is empty or too long
        """
        validate_name(name, "role name")

        async with self._operation("create_role") as store:
            row = await store.select_one(Table.ROLES, name=name)
            if row is not None:
                return Role.from_row(row)

            try:
                role_id = await store.insert(Table.ROLES, {"name": name, "title": title})
            except ConstraintViolationError as e:
                if e.kind != "unique":
                    raise
                # Created concurrently
                return await self._get_role(name)

            logger.info("Role created", context={"role": name})
            return Role(id=role_id, name=name, title=title)

    async def create_permission(self, name: str, title: str | None = None) -> Permission:
        """Create a permission unless one with that name exists.

        Same contract as ``create_role``.
        """
        validate_name(name, "permission name")

        async with self._operation("create_permission") as store:
            row = await store.select_one(Table.PERMISSIONS, name=name)
            if row is not None:
                return Permission.from_row(row)

            try:
                permission_id = await store.insert(
                    Table.PERMISSIONS, {"name": name, "title": title}
                )
            except ConstraintViolationError as e:
                if e.kind != "unique":
                    raise
                return await self._get_permission(name)

            logger.info("Permission created", context={"permission": name})
            return Permission(id=permission_id, name=name, title=title)

    # Assignment

    async def assign_permissions(self, role_name: str, perm_names: Iterable[str]) -> None:
        """Grant a group of permissions to a role.

        Every permission is resolved before anything is written, so an
        unknown name leaves the role's links untouched. Pairs that are
        already linked are skipped.

        Args:
            role_name: Role to grant to
            perm_names: Permission names to grant

        Raises:
            RoleNotFoundError: If the role doesn't exist
            PermissionNotFoundError: If any permission doesn't exist
        """
        names = list(dict.fromkeys(perm_names))

        async with self._operation("assign_permissions") as store:
            role = await self._get_role(role_name)
            permissions = [await self._get_permission(name) for name in names]

            granted: list[str] = []
            for permission in permissions:
                if await store.exists(
                    Table.ROLE_PERMISSIONS, role_id=role.id, permission_id=permission.id
                ):
                    continue

                try:
                    await store.insert(
                        Table.ROLE_PERMISSIONS,
                        {"role_id": role.id, "permission_id": permission.id},
                    )
                except ConstraintViolationError as e:
                    if e.kind != "unique":
                        raise
                    continue
                granted.append(permission.name)

            if granted:
                logger.info(
                    "Permissions assigned",
                    context={"role": role_name, "permissions": granted},
                )

    async def assign_role(self, user_id: int, role_name: str) -> None:
        """Assign a role to a user.

        Raises:
            RoleNotFoundError: If the role doesn't exist
            RoleAlreadyAssignedError: If the user already holds the role
        """
        validate_user_id(user_id)

        async with self._operation("assign_role", user_id=user_id) as store:
            role = await self._get_role(role_name)

            if await store.exists(Table.USER_ROLES, user_id=user_id, role_id=role.id):
                raise RoleAlreadyAssignedError(user_id, role_name)

            try:
                await store.insert(Table.USER_ROLES, {"user_id": user_id, "role_id": role.id})
            except ConstraintViolationError as e:
                if e.kind == "unique":
                    raise RoleAlreadyAssignedError(user_id, role_name) from e
                raise

            logger.info("Role assigned", context={"role": role_name})

    # Revocation

    async def revoke_role(self, user_id: int, role_name: str) -> None:
        """Revoke a role from a user. Revoking an unassigned role is a no-op.

        Raises:
            RoleNotFoundError: If the role doesn't exist
        """
        validate_user_id(user_id)

        async with self._operation("revoke_role", user_id=user_id) as store:
            role = await self._get_role(role_name)
            removed = await store.delete(Table.USER_ROLES, user_id=user_id, role_id=role.id)
            if removed:
                logger.info("Role revoked", context={"role": role_name})

    async def revoke_permission(self, user_id: int, perm_name: str) -> None:
        """Remove a permission from every role the user holds.

        This changes the roles themselves, so other holders of those roles
        lose the permission too.

        Raises:
            PermissionNotFoundError: If the permission doesn't exist
        """
        validate_user_id(user_id)

        async with self._operation("revoke_permission", user_id=user_id) as store:
            permission = await self._get_permission(perm_name)
            user_roles = await store.select_many(Table.USER_ROLES, user_id=user_id)
            role_ids = [UserRole.from_row(row).role_id for row in user_roles]
            if not role_ids:
                return

            removed = await store.delete(
                Table.ROLE_PERMISSIONS, role_id=role_ids, permission_id=permission.id
            )
            if removed:
                logger.info(
                    "Permission revoked from user roles",
                    context={"permission": perm_name, "links": removed},
                )

    async def revoke_role_permission(self, role_name: str, perm_name: str) -> None:
        """Revoke a permission from a role. A missing link is a no-op.

        Raises:
            RoleNotFoundError: If the role doesn't exist
            PermissionNotFoundError: If the permission doesn't exist
        """
        async with self._operation("revoke_role_permission") as store:
            role = await self._get_role(role_name)
            permission = await self._get_permission(perm_name)
            removed = await store.delete(
                Table.ROLE_PERMISSIONS, role_id=role.id, permission_id=permission.id
            )
            if removed:
                logger.info(
                    "Permission revoked from role",
                    context={"role": role_name, "permission": perm_name},
                )

    # Checks

    async def check_role(self, user_id: int, role_name: str) -> bool:
        """Check whether a user holds a role.

        Raises:
            RoleNotFoundError: If the role doesn't exist
        """
        validate_user_id(user_id)

        async with self._operation("check_role", user_id=user_id):
            role = await self._get_role(role_name)
            try:
                await self._get_user_role(user_id, role.id)
            except UserRoleNotFoundError:
                return False
            return True

    async def check_permission(self, user_id: int, perm_name: str) -> bool:
        """Check whether any role held by the user grants a permission.

        Raises:
            PermissionNotFoundError: If the permission doesn't exist, even
                when the user holds no roles
        """
        validate_user_id(user_id)

        async with self._operation("check_permission", user_id=user_id) as store:
            user_roles = await store.select_many(Table.USER_ROLES, user_id=user_id)
            role_ids = [UserRole.from_row(row).role_id for row in user_roles]

            permission = await self._get_permission(perm_name)
            if not role_ids:
                return False

            return await store.exists(
                Table.ROLE_PERMISSIONS, role_id=role_ids, permission_id=permission.id
            )

    async def check_role_permission(self, role_name: str, perm_name: str) -> bool:
        """Check whether a role grants a permission directly.

        Raises:
            RoleNotFoundError: If the role doesn't exist
            PermissionNotFoundError: If the permission doesn't exist
        """
        async with self._operation("check_role_permission"):
            role = await self._get_role(role_name)
            permission = await self._get_permission(perm_name)
            try:
                await self._get_role_permission(role.id, permission.id)
            except RolePermissionNotFoundError:
                return False
            return True

    # Listing

    async def get_roles(self) -> list[str]:
        """Return all role names in storage order."""
        async with self._operation("get_roles") as store:
            rows = await store.select_many(Table.ROLES)
            return [row.name for row in rows]

    async def get_user_roles(self, user_id: int) -> list[str]:
        """Return the names of the roles a user holds.

        Links whose role no longer resolves are skipped.
        """
        validate_user_id(user_id)

        async with self._operation("get_user_roles", user_id=user_id) as store:
            links = [
                UserRole.from_row(row)
                for row in await store.select_many(Table.USER_ROLES, user_id=user_id)
            ]
            role_rows = await store.select_many(
                Table.ROLES, id=[link.role_id for link in links]
            )
            names = {row.id: row.name for row in role_rows}

            result: list[str] = []
            for link in links:
                if link.role_id not in names:
                    logger.debug(
                        "Skipping unresolved role", context={"role_id": link.role_id}
                    )
                    continue
                result.append(names[link.role_id])
            return result

    async def get_permissions(self) -> list[str]:
        """Return all permission names in storage order."""
        async with self._operation("get_permissions") as store:
            rows = await store.select_many(Table.PERMISSIONS)
            return [row.name for row in rows]

    # Deletion

    async def delete_role(self, name: str) -> None:
        """Delete a role and its permission links.

        Raises:
            RoleNotFoundError: If the role doesn't exist
            RoleInUseError: If any user holds the role
        """
        async with self._operation("delete_role") as store:
            role = await self._get_role(name)

            if await store.exists(Table.USER_ROLES, role_id=role.id):
                raise RoleInUseError(name)

            await store.delete(Table.ROLE_PERMISSIONS, role_id=role.id)
            await store.delete(Table.ROLES, id=role.id)
            logger.info("Role deleted", context={"role": name})

    async def delete_permission(self, name: str) -> None:
        """Delete a permission.

        Raises:
            PermissionNotFoundError: If the permission doesn't exist
            PermissionInUseError: If any role grants the permission
        """
        async with self._operation("delete_permission") as store:
            permission = await self._get_permission(name)

            if await store.exists(Table.ROLE_PERMISSIONS, permission_id=permission.id):
                raise PermissionInUseError(name)

            await store.delete(Table.PERMISSIONS, id=permission.id)
            logger.info("Permission deleted", context={"permission": name})

    # Resolution helpers

    async def _get_role(self, name: str) -> Role:
        row = await self.store.select_one(Table.ROLES, name=name)
        if row is None:
            raise RoleNotFoundError(name)
        return Role.from_row(row)

    async def _get_permission(self, name: str) -> Permission:
        row = await self.store.select_one(Table.PERMISSIONS, name=name)
        if row is None:
            raise PermissionNotFoundError(name)
        return Permission.from_row(row)

    async def _get_role_permission(self, role_id: int, permission_id: int) -> RolePermission:
        row = await self.store.select_one(
            Table.ROLE_PERMISSIONS, role_id=role_id, permission_id=permission_id
        )
        if row is None:
            raise RolePermissionNotFoundError(role_id, permission_id)
        return RolePermission.from_row(row)

    async def _get_user_role(self, user_id: int, role_id: int) -> UserRole:
        row = await self.store.select_one(Table.USER_ROLES, user_id=user_id, role_id=role_id)
        if row is None:
            raise UserRoleNotFoundError(user_id, role_id)
        return UserRole.from_row(row)
