# maintenance_hub/services/__init__.py
"""
Business logic services for Maintenance Hub.
"""
from maintenance_hub.services.batch_integrity import build_report, run_check, render_report
from maintenance_hub.services.features import FEATURES, FeatureAccess, FeatureGate
from maintenance_hub.services.roles import RoleSet, RoleService, SqlRoleStore, parse_role_ref

__all__ = [
    "build_report",
    "run_check",
    "render_report",
    "FEATURES",
    "FeatureAccess",
    "FeatureGate",
    "RoleSet",
    "RoleService",
    "SqlRoleStore",
    "parse_role_ref",
]
