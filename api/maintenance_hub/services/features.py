# maintenance_hub/services/features.py
"""
Named features derived from role predicates, and the declarative gate.
"""
from __future__ import annotations
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Sequence, Tuple, Union

from maintenance_hub.db_models import AppRole
from maintenance_hub.errors import UnknownFeatureError
from maintenance_hub.services.roles import (
    RoleSet, RoleRef, SystemRoleRef, CustomRoleRef, parse_role_ref, system_role_ref,
)

Predicate = Callable[[RoleSet], bool]

INVENTORY_ROLES: Tuple[AppRole, ...] = tuple(AppRole)
BATCH_APPROVAL_ROLES = (AppRole.admin, AppRole.system_owner, AppRole.supervisor, AppRole.parts_approver)
JOB_ALLOCATION_ROLES = (AppRole.admin, AppRole.system_owner, AppRole.supervisor, AppRole.job_allocator)
BATCH_MANAGEMENT_ROLES = (AppRole.admin, AppRole.system_owner, AppRole.supervisor, AppRole.batch_manager)


def any_of(*roles: AppRole) -> Predicate:
    def _pred(rs: RoleSet) -> bool:
        return rs.has_any_role(roles)
    return _pred


FEATURES: Mapping[str, Predicate] = MappingProxyType({
    # Admin features
    "userManagement": RoleSet.can_manage_system,
    "roleManagement": RoleSet.can_manage_system,
    "systemSettings": RoleSet.can_manage_system,

    # Business features
    "reports": RoleSet.can_view_reports,
    "customers": RoleSet.can_manage_customers,
    "suppliers": RoleSet.can_manage_suppliers,
    "analytics": RoleSet.can_view_analytics,

    # Inventory features
    "inventory": any_of(*INVENTORY_ROLES),
    "batchApproval": any_of(*BATCH_APPROVAL_ROLES),
    "jobAllocation": any_of(*JOB_ALLOCATION_ROLES),
    "batchManagement": any_of(*BATCH_MANAGEMENT_ROLES),
})


def check_feature_names(names: Iterable[str], features: Mapping[str, Predicate] = FEATURES) -> Tuple[str, ...]:
    names = tuple(names)
    for name in names:
        if name not in features:
            raise UnknownFeatureError(name)
    return names


class FeatureAccess:
    """Feature checks for one user's role set."""

    def __init__(self, roles: RoleSet, features: Mapping[str, Predicate] = FEATURES):
        self.roles = roles
        self.features = features

    def has_feature_access(self, name: str) -> bool:
        pred = self.features.get(name)
        if pred is None:
            raise UnknownFeatureError(name)
        return bool(pred(self.roles))

    def has_any_feature_access(self, names: Iterable[str]) -> bool:
        return any(self.has_feature_access(n) for n in check_feature_names(names, self.features))

    def has_all_feature_access(self, names: Iterable[str]) -> bool:
        return all(self.has_feature_access(n) for n in check_feature_names(names, self.features))

    def as_dict(self) -> Dict[str, bool]:
        return {name: bool(pred(self.roles)) for name, pred in self.features.items()}

    # direct access to role checks
    def has_role(self, role: Union[str, AppRole]) -> bool:
        return self.roles.has_role(role)

    def has_custom_role(self, name: str) -> bool:
        return self.roles.has_custom_role(name)

    def has_any_role(self, names: Iterable[Union[str, AppRole]]) -> bool:
        return self.roles.has_any_role(names)


class FeatureGate:
    """
    Declarative role gate.

    `required_roles` may mix system and custom role names; each is resolved
    once here. `required_system_roles` must all be AppRole values. With no
    roles at all the gate is open. Otherwise any one role opens it, or all of
    them with `require_all=True`.
    """

    def __init__(
        self,
        required_roles: Sequence[Union[str, RoleRef]] = (),
        required_system_roles: Sequence[Union[str, AppRole]] = (),
        fallback: Any = None,
        require_all: bool = False,
    ):
        refs = [parse_role_ref(r) for r in required_roles]
        refs.extend(system_role_ref(r) for r in required_system_roles)
        self.refs: Tuple[RoleRef, ...] = tuple(refs)
        self.fallback = fallback
        self.require_all = require_all

    @property
    def system_refs(self) -> Tuple[SystemRoleRef, ...]:
        return tuple(r for r in self.refs if isinstance(r, SystemRoleRef))

    @property
    def custom_refs(self) -> Tuple[CustomRoleRef, ...]:
        return tuple(r for r in self.refs if isinstance(r, CustomRoleRef))

    def allows(self, roles: RoleSet) -> bool:
        if not self.refs:
            return True
        if self.require_all:
            return all(roles.has(r) for r in self.refs)
        return any(roles.has(r) for r in self.refs)

    def render(self, roles: RoleSet, content: Any, fallback: Optional[Any] = None) -> Any:
        if self.allows(roles):
            return content
        return self.fallback if fallback is None else fallback

    def __repr__(self) -> str:
        mode = "all" if self.require_all else "any"
        return f"FeatureGate({mode} of {[str(r) for r in self.refs]})"
