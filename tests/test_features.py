import pytest

from maintenance_hub.db_models import AppRole
from maintenance_hub.errors import UnknownFeatureError
from maintenance_hub.services.features import FEATURES, FeatureAccess, FeatureGate
from maintenance_hub.services.roles import CustomRoleRef, RoleSet, SystemRoleRef


def roles(*system, custom=()):
    return RoleSet(frozenset(AppRole(r) for r in system), frozenset(custom))


class TestFeatureAccess:
    def test_admin_gets_everything(self):
        access = FeatureAccess(roles("admin"))
        assert all(access.as_dict().values())
        assert access.has_feature_access("roleManagement")
        assert access.has_role("admin")

    def test_no_roles_gets_nothing(self):
        access = FeatureAccess(RoleSet())
        assert not any(access.as_dict().values())

    def test_batch_manager(self):
        access = FeatureAccess(roles("batch_manager"))
        assert access.has_feature_access("inventory")
        assert access.has_feature_access("batchManagement")
        assert not access.has_feature_access("batchApproval")
        assert not access.has_feature_access("jobAllocation")
        assert not access.has_feature_access("userManagement")

    def test_parts_approver(self):
        access = FeatureAccess(roles("parts_approver"))
        assert access.has_feature_access("batchApproval")
        assert not access.has_feature_access("batchManagement")

    def test_custom_role_grants_business_feature(self):
        access = FeatureAccess(roles(custom={"view_analytics"}))
        assert access.has_feature_access("analytics")
        assert not access.has_feature_access("reports")
        assert not access.has_feature_access("inventory")
        assert access.has_custom_role("view_analytics")

    def test_any_and_all(self):
        access = FeatureAccess(roles("job_allocator"))
        assert access.has_any_feature_access(["userManagement", "jobAllocation"])
        assert not access.has_all_feature_access(["userManagement", "jobAllocation"])
        assert access.has_all_feature_access(["inventory", "jobAllocation"])

    def test_empty_lists(self):
        access = FeatureAccess(roles("admin"))
        assert not access.has_any_feature_access([])
        assert access.has_all_feature_access([])

    def test_unknown_feature(self):
        access = FeatureAccess(roles("admin"))
        with pytest.raises(UnknownFeatureError):
            access.has_feature_access("teleport")
        with pytest.raises(UnknownFeatureError):
            access.has_any_feature_access(["inventory", "teleport"])

    def test_feature_names(self):
        assert set(FEATURES) == {
            "userManagement", "roleManagement", "systemSettings",
            "reports", "customers", "suppliers", "analytics",
            "inventory", "batchApproval", "jobAllocation", "batchManagement",
        }


class TestFeatureGate:
    def test_empty_gate_is_open(self):
        gate = FeatureGate()
        assert gate.allows(RoleSet())
        assert gate.render(RoleSet(), "content") == "content"

    def test_fallback_defaults_to_none(self):
        gate = FeatureGate(required_system_roles=["admin"])
        assert gate.render(RoleSet(), "content") is None

    def test_custom_fallback(self):
        gate = FeatureGate(required_roles=["view_reports"], fallback="no access")
        assert gate.render(RoleSet(), "content") == "no access"
        assert gate.render(roles(custom={"view_reports"}), "content") == "content"

    def test_any_of_mixed_roles(self):
        gate = FeatureGate(required_roles=["view_reports"], required_system_roles=["supervisor"])
        assert gate.allows(roles("supervisor"))
        assert gate.allows(roles(custom={"view_reports"}))
        assert not gate.allows(roles("admin"))

    def test_require_all(self):
        gate = FeatureGate(required_roles=["view_reports"], required_system_roles=["supervisor"], require_all=True)
        assert not gate.allows(roles("supervisor"))
        assert gate.allows(roles("supervisor", custom={"view_reports"}))

    def test_system_names_in_required_roles_resolve_as_system_roles(self):
        gate = FeatureGate(required_roles=["admin"])
        assert gate.refs == (SystemRoleRef(AppRole.admin),)
        assert gate.allows(roles("admin"))
        assert not gate.allows(roles(custom={"admin"}))

    def test_split_refs(self):
        gate = FeatureGate(required_roles=["view_reports", "admin"])
        assert gate.system_refs == (SystemRoleRef(AppRole.admin),)
        assert gate.custom_refs == (CustomRoleRef("view_reports"),)

    def test_bad_system_role(self):
        with pytest.raises(ValueError):
            FeatureGate(required_system_roles=["view_reports"])

    def test_no_roles_fails_every_non_empty_gate(self):
        for role in AppRole:
            assert not FeatureGate(required_system_roles=[role]).allows(RoleSet())
        assert not FeatureGate(required_roles=["view_reports"]).allows(RoleSet())
