# maintenance_hub/services/roles.py
"""
Role memberships and role predicates.

A user holds system roles (the closed AppRole enum) and custom roles
(administrator-defined rows in custom_roles, matched by name). Role names
coming from callers are resolved once into a RoleRef:

    RoleRef = SystemRoleRef(AppRole) | CustomRoleRef(name)

A RoleSet answers every predicate. An empty RoleSet is what callers get while
roles are loading, after a failed load, or without a user, so every check
fails closed.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Optional, Protocol, Tuple, Union

from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from maintenance_hub.cache import QueryCache, QueryStatus
from maintenance_hub.db_models import AppRole, UserRole, CustomRole
from maintenance_hub.errors import DuplicateRoleAssignmentError, CustomRoleNotFoundError
from maintenance_hub.models import RoleMembership, CustomRoleOut

logger = logging.getLogger(__name__)

SYSTEM_ROLE_VALUES = frozenset(r.value for r in AppRole)

# Cache prefixes touched by any role mutation
ROLE_QUERY_PREFIXES = ("user-roles", "all-user-roles", "user-roles-combined")


# ============================================================================
# Role references
# ============================================================================

@dataclass(frozen=True)
class SystemRoleRef:
    role: AppRole

    def __str__(self) -> str:
        return self.role.value


@dataclass(frozen=True)
class CustomRoleRef:
    name: str

    def __str__(self) -> str:
        return self.name


RoleRef = Union[SystemRoleRef, CustomRoleRef]


def to_app_role(value: Union[str, AppRole]) -> Optional[AppRole]:
    if isinstance(value, AppRole):
        return value
    if value in SYSTEM_ROLE_VALUES:
        return AppRole(value)
    return None


def parse_role_ref(value: Union[str, AppRole, SystemRoleRef, CustomRoleRef]) -> RoleRef:
    """System role when the name is in AppRole, custom role otherwise."""
    if isinstance(value, (SystemRoleRef, CustomRoleRef)):
        return value
    role = to_app_role(value)
    if role is not None:
        return SystemRoleRef(role)
    return CustomRoleRef(str(value))


def system_role_ref(value: Union[str, AppRole]) -> SystemRoleRef:
    role = to_app_role(value)
    if role is None:
        raise ValueError(f"'{value}' is not a system role")
    return SystemRoleRef(role)


# ============================================================================
# Role set
# ============================================================================

@dataclass(frozen=True)
class RoleSet:
    system_roles: FrozenSet[AppRole] = frozenset()
    custom_roles: FrozenSet[str] = frozenset()

    @classmethod
    def from_memberships(cls, rows: Iterable[RoleMembership]) -> "RoleSet":
        system: set = set()
        custom: set = set()
        for row in rows:
            if row.role:
                role = to_app_role(row.role)
                if role is not None:
                    system.add(role)
                else:
                    logger.warning("ignoring unknown system role %r for user %s", row.role, row.user_id)
            if row.custom_role_name:
                custom.add(row.custom_role_name)
        return cls(frozenset(system), frozenset(custom))

    def __bool__(self) -> bool:
        return bool(self.system_roles or self.custom_roles)

    def has_role(self, role: Union[str, AppRole]) -> bool:
        app_role = to_app_role(role)
        return app_role is not None and app_role in self.system_roles

    def has_custom_role(self, name: str) -> bool:
        return name in self.custom_roles

    def has(self, ref: RoleRef) -> bool:
        if isinstance(ref, SystemRoleRef):
            return self.has_role(ref.role)
        return self.has_custom_role(ref.name)

    def has_any_role(self, names: Iterable[Union[str, AppRole]]) -> bool:
        """True if any name is a held custom role or a held system role."""
        for name in names:
            if isinstance(name, AppRole):
                if self.has_role(name):
                    return True
                continue
            if self.has_custom_role(name) or self.has_role(name):
                return True
        return False

    def is_admin(self) -> bool:
        return self.has_role(AppRole.admin)

    def is_system_owner(self) -> bool:
        return self.has_role(AppRole.system_owner)

    def is_supervisor(self) -> bool:
        return self.has_role(AppRole.supervisor)

    def is_parts_approver(self) -> bool:
        return self.has_role(AppRole.parts_approver)

    def is_job_allocator(self) -> bool:
        return self.has_role(AppRole.job_allocator)

    def is_batch_manager(self) -> bool:
        return self.has_role(AppRole.batch_manager)

    # System owners and admins can manage the system
    def can_manage_system(self) -> bool:
        return self.is_admin() or self.is_system_owner()

    def can_view_reports(self) -> bool:
        return self.can_manage_system() or self.has_custom_role("view_reports")

    def can_manage_customers(self) -> bool:
        return self.can_manage_system() or self.has_custom_role("manage_customers")

    def can_manage_suppliers(self) -> bool:
        return self.can_manage_system() or self.has_custom_role("manage_suppliers")

    def can_view_analytics(self) -> bool:
        return self.can_manage_system() or self.has_custom_role("view_analytics")


EMPTY_ROLE_SET = RoleSet()


# ============================================================================
# Store
# ============================================================================

class RoleStore(Protocol):
    async def list_memberships(self, user_id: str) -> List[RoleMembership]: ...
    async def insert_role(self, user_id: str, role: AppRole) -> None: ...
    async def delete_role(self, user_id: str, role: AppRole) -> int: ...
    async def insert_custom_role(self, user_id: str, custom_role_id: str) -> None: ...
    async def delete_custom_role(self, user_id: str, custom_role_id: str) -> int: ...
    async def list_custom_roles(self) -> List[CustomRoleOut]: ...
    async def commit(self) -> None: ...


class SqlRoleStore:
    """user_roles / custom_roles through an AsyncSession."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_memberships(self, user_id: str) -> List[RoleMembership]:
        stmt = (
            select(UserRole)
            .where(UserRole.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        out: List[RoleMembership] = []
        for ur in result.scalars().all():
            out.append(RoleMembership(
                user_id=ur.user_id,
                role=ur.role.value if ur.role else None,
                custom_role_id=ur.custom_role_id,
                custom_role_name=ur.custom_role.name if ur.custom_role else None,
            ))
        return out

    async def _insert(self, row: UserRole) -> None:
        self.db.add(row)
        try:
            await self.db.flush()
        except IntegrityError as e:
            await self.db.rollback()
            raise DuplicateRoleAssignmentError(str(e.orig)) from e

    async def insert_role(self, user_id: str, role: AppRole) -> None:
        await self._insert(UserRole(user_id=user_id, role=role))

    async def delete_role(self, user_id: str, role: AppRole) -> int:
        result = await self.db.execute(
            delete(UserRole).where(UserRole.user_id == user_id, UserRole.role == role)
        )
        return result.rowcount or 0

    async def insert_custom_role(self, user_id: str, custom_role_id: str) -> None:
        if await self.db.get(CustomRole, custom_role_id) is None:
            raise CustomRoleNotFoundError(f"Custom role '{custom_role_id}' not found")
        await self._insert(UserRole(user_id=user_id, custom_role_id=custom_role_id))

    async def delete_custom_role(self, user_id: str, custom_role_id: str) -> int:
        result = await self.db.execute(
            delete(UserRole).where(UserRole.user_id == user_id, UserRole.custom_role_id == custom_role_id)
        )
        return result.rowcount or 0

    async def list_custom_roles(self) -> List[CustomRoleOut]:
        result = await self.db.execute(select(CustomRole).order_by(CustomRole.label))
        return [
            CustomRoleOut(id=r.id, name=r.name, label=r.label, description=r.description)
            for r in result.scalars().all()
        ]

    async def commit(self) -> None:
        await self.db.commit()


# ============================================================================
# Service: cached reads, invalidating writes
# ============================================================================

class RoleService:
    """
    Role reads go through the query cache; every write invalidates it.

    Writes commit before invalidating, so a read racing the write cannot
    cache the state from before the commit.
    """

    def __init__(self, store: RoleStore, cache: QueryCache):
        self.store = store
        self.cache = cache

    @staticmethod
    def roles_key(user_id: str) -> Tuple[str, str]:
        return ("user-roles", user_id)

    async def load(self, user_id: Optional[str]) -> Tuple[QueryStatus, RoleSet]:
        if not user_id:
            return QueryStatus.idle, EMPTY_ROLE_SET
        entry = await self.cache.fetch(self.roles_key(user_id), lambda: self.store.list_memberships(user_id))
        if not entry.ok:
            return entry.status, EMPTY_ROLE_SET
        return entry.status, RoleSet.from_memberships(entry.data or [])

    async def role_set(self, user_id: Optional[str]) -> RoleSet:
        _, roles = await self.load(user_id)
        return roles

    def invalidate(self) -> None:
        for prefix in ROLE_QUERY_PREFIXES:
            self.cache.invalidate(prefix)

    async def _committed(self) -> None:
        await self.store.commit()
        self.invalidate()

    async def assign_role(self, user_id: str, role: Union[str, AppRole]) -> None:
        await self.store.insert_role(user_id, system_role_ref(role).role)
        await self._committed()
        logger.info("assigned role %s to user %s", role, user_id)

    async def remove_role(self, user_id: str, role: Union[str, AppRole]) -> int:
        n = await self.store.delete_role(user_id, system_role_ref(role).role)
        await self._committed()
        logger.info("removed role %s from user %s (%s rows)", role, user_id, n)
        return n

    async def assign_custom_role(self, user_id: str, custom_role_id: str) -> None:
        await self.store.insert_custom_role(user_id, custom_role_id)
        await self._committed()
        logger.info("assigned custom role %s to user %s", custom_role_id, user_id)

    async def remove_custom_role(self, user_id: str, custom_role_id: str) -> int:
        n = await self.store.delete_custom_role(user_id, custom_role_id)
        await self._committed()
        logger.info("removed custom role %s from user %s (%s rows)", custom_role_id, user_id, n)
        return n

    async def list_custom_roles(self, actor: RoleSet) -> List[CustomRoleOut]:
        if not actor.can_manage_system():
            return []
        entry = await self.cache.fetch(("custom-roles",), self.store.list_custom_roles)
        return list(entry.data or []) if entry.ok else []
