# maintenance_hub/deps.py
"""
FastAPI dependencies for the current user's roles and for route gating.

The authentication layer in front of this service puts the verified user id
in the X-User-Id header. No header means no user: role checks fail closed and
gated routes answer 401.
"""
from __future__ import annotations
from typing import Callable, Optional

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from maintenance_hub.cache import QueryCache
from maintenance_hub.database import get_session
from maintenance_hub.services.features import FeatureAccess, FeatureGate, check_feature_names
from maintenance_hub.services.roles import RoleService, RoleSet, SqlRoleStore
from maintenance_hub.settings import settings


def get_current_user_id(x_user_id: Optional[str] = Header(default=None)) -> Optional[str]:
    uid = (x_user_id or "").strip()
    return uid or None


def get_query_cache(request: Request) -> QueryCache:
    cache = getattr(request.app.state, "query_cache", None)
    if cache is None:
        cache = QueryCache.from_settings(settings)
        request.app.state.query_cache = cache
    return cache


def get_role_service(
    db: AsyncSession = Depends(get_session),
    cache: QueryCache = Depends(get_query_cache),
) -> RoleService:
    return RoleService(SqlRoleStore(db), cache)


async def get_role_set(
    user_id: Optional[str] = Depends(get_current_user_id),
    service: RoleService = Depends(get_role_service),
) -> RoleSet:
    return await service.role_set(user_id)


def get_feature_access(roles: RoleSet = Depends(get_role_set)) -> FeatureAccess:
    return FeatureAccess(roles)


def _require_user(user_id: Optional[str]) -> None:
    if not user_id:
        raise HTTPException(status_code=401, detail="Not authenticated")


def require_feature(name: str) -> Callable:
    check_feature_names([name])

    def _dep(
        user_id: Optional[str] = Depends(get_current_user_id),
        access: FeatureAccess = Depends(get_feature_access),
    ) -> None:
        _require_user(user_id)
        if not access.has_feature_access(name):
            raise HTTPException(status_code=403, detail={"error": "missing_feature", "missing": [name]})

    return _dep


def require_any_feature(*names: str) -> Callable:
    names = check_feature_names(names)

    def _dep(
        user_id: Optional[str] = Depends(get_current_user_id),
        access: FeatureAccess = Depends(get_feature_access),
    ) -> None:
        _require_user(user_id)
        if not access.has_any_feature_access(names):
            raise HTTPException(status_code=403, detail={"error": "missing_feature", "missing": sorted(names)})

    return _dep


def require_roles(*roles: str, require_all: bool = False) -> Callable:
    gate = FeatureGate(required_roles=roles, require_all=require_all)

    def _dep(
        user_id: Optional[str] = Depends(get_current_user_id),
        role_set: RoleSet = Depends(get_role_set),
    ) -> None:
        _require_user(user_id)
        if not gate.allows(role_set):
            missing = sorted(str(r) for r in gate.refs if not role_set.has(r))
            raise HTTPException(status_code=403, detail={"error": "missing_roles", "missing": missing})

    return _dep
