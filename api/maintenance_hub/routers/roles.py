# maintenance_hub/routers/roles.py
"""
Roles Router - current user's roles/features and admin role assignment.
"""
from __future__ import annotations
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException

from maintenance_hub.db_models import AppRole
from maintenance_hub.deps import (
    get_current_user_id, get_role_service, get_role_set, require_feature,
)
from maintenance_hub.errors import DuplicateRoleAssignmentError, CustomRoleNotFoundError
from maintenance_hub.models import CustomRoleOut, FeaturesOut, RoleChangeOut, UserRolesOut
from maintenance_hub.services.features import FeatureAccess
from maintenance_hub.services.roles import RoleService, RoleSet

router = APIRouter(tags=["Roles"])

manage_roles = Depends(require_feature("roleManagement"))


# ============================================================================
# Current user
# ============================================================================

@router.get("/me/roles", response_model=UserRolesOut)
async def my_roles(
    user_id: Optional[str] = Depends(get_current_user_id),
    service: RoleService = Depends(get_role_service),
):
    status, roles = await service.load(user_id)
    return UserRolesOut(
        user_id=user_id,
        status=status.value,
        system_roles=sorted(r.value for r in roles.system_roles),
        custom_roles=sorted(roles.custom_roles),
    )


@router.get("/me/features", response_model=FeaturesOut)
async def my_features(
    user_id: Optional[str] = Depends(get_current_user_id),
    roles: RoleSet = Depends(get_role_set),
):
    return FeaturesOut(user_id=user_id, features=FeatureAccess(roles).as_dict())


# ============================================================================
# System roles
# ============================================================================

@router.post("/users/{user_id}/roles/{role}", response_model=RoleChangeOut, status_code=201, dependencies=[manage_roles])
async def assign_role(user_id: str, role: AppRole, service: RoleService = Depends(get_role_service)):
    try:
        await service.assign_role(user_id, role)
    except DuplicateRoleAssignmentError as e:
        raise HTTPException(409, detail=f"User already has role '{role.value}': {e}")
    return RoleChangeOut(user_id=user_id, role=role.value, action="assigned")


@router.delete("/users/{user_id}/roles/{role}", response_model=RoleChangeOut, dependencies=[manage_roles])
async def remove_role(user_id: str, role: AppRole, service: RoleService = Depends(get_role_service)):
    await service.remove_role(user_id, role)
    return RoleChangeOut(user_id=user_id, role=role.value, action="removed")


# ============================================================================
# Custom roles
# ============================================================================

@router.get("/custom-roles", response_model=List[CustomRoleOut], dependencies=[manage_roles])
async def list_custom_roles(
    roles: RoleSet = Depends(get_role_set),
    service: RoleService = Depends(get_role_service),
):
    return await service.list_custom_roles(roles)


@router.post(
    "/users/{user_id}/custom-roles/{custom_role_id}",
    response_model=RoleChangeOut,
    status_code=201,
    dependencies=[manage_roles],
)
async def assign_custom_role(user_id: str, custom_role_id: str, service: RoleService = Depends(get_role_service)):
    try:
        await service.assign_custom_role(user_id, custom_role_id)
    except CustomRoleNotFoundError as e:
        raise HTTPException(404, detail=str(e))
    except DuplicateRoleAssignmentError as e:
        raise HTTPException(409, detail=f"User already has custom role '{custom_role_id}': {e}")
    return RoleChangeOut(user_id=user_id, custom_role_id=custom_role_id, action="assigned")


@router.delete("/users/{user_id}/custom-roles/{custom_role_id}", response_model=RoleChangeOut, dependencies=[manage_roles])
async def remove_custom_role(user_id: str, custom_role_id: str, service: RoleService = Depends(get_role_service)):
    await service.remove_custom_role(user_id, custom_role_id)
    return RoleChangeOut(user_id=user_id, custom_role_id=custom_role_id, action="removed")
