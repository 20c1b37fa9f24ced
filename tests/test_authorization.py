"""Tests for the role gate."""
from uuid import uuid4

import pytest

from prodflow_core import models
from prodflow_core.auth import (
    ADMIN_ONLY,
    MANAGERS,
    WRITERS,
    RoleCheck,
    authorize,
    has_role,
    require_organization,
    require_role,
    role_satisfies,
)
from prodflow_core.errors import InsufficientRoleError, NotAMemberError, UserNotFoundError
from prodflow_core.models import Role


class TestRoleSatisfies:
    def test_exact_mode_is_set_membership(self):
        """Test that ADMIN does not satisfy a PM-only check in exact mode."""
        assert role_satisfies(Role.PRODUCT_MANAGER, [Role.PRODUCT_MANAGER])
        assert not role_satisfies(Role.ADMIN, [Role.PRODUCT_MANAGER])

    def test_minimum_mode_uses_rank(self):
        assert role_satisfies(Role.ADMIN, [Role.PRODUCT_MANAGER], RoleCheck.MINIMUM)
        assert role_satisfies(Role.CONTRIBUTOR, [Role.CONTRIBUTOR], RoleCheck.MINIMUM)
        assert not role_satisfies(Role.STAKEHOLDER, [Role.CONTRIBUTOR], RoleCheck.MINIMUM)

    def test_minimum_mode_takes_lowest_listed_role(self):
        assert role_satisfies(Role.CONTRIBUTOR, [Role.ADMIN, Role.CONTRIBUTOR], RoleCheck.MINIMUM)

    def test_empty_set_denies(self):
        assert not role_satisfies(Role.ADMIN, [])
        assert not role_satisfies(Role.ADMIN, [], RoleCheck.MINIMUM)

    def test_role_sets(self):
        assert ADMIN_ONLY == (Role.ADMIN,)
        assert Role.STAKEHOLDER not in WRITERS
        assert Role.CONTRIBUTOR not in MANAGERS


class TestAuthorize:
    def test_admin_passes_admin_only(self, db, admin, organization):
        membership = require_role(db, admin.id, organization.id, ADMIN_ONLY)
        assert membership.role == Role.ADMIN

    def test_unknown_user(self, db, organization):
        with pytest.raises(UserNotFoundError) as exc_info:
            require_role(db, uuid4(), organization.id, WRITERS)
        assert exc_info.value.message == "User not found"

    def test_non_member(self, db, organization, outsider):
        with pytest.raises(NotAMemberError) as exc_info:
            require_role(db, outsider.id, organization.id, WRITERS)
        assert exc_info.value.message == "Access denied: Not a member of this organization"

    def test_insufficient_role(self, db, organization, stakeholder):
        with pytest.raises(InsufficientRoleError) as exc_info:
            require_role(db, stakeholder.id, organization.id, WRITERS)

        error = exc_info.value
        assert error.message == "Access denied: Insufficient permissions"
        assert error.kind == "authorization"
        assert error.role == Role.STAKEHOLDER

    def test_admin_does_not_satisfy_manager_only_set(self, db, admin, organization):
        with pytest.raises(InsufficientRoleError) as exc_info:
            require_role(db, admin.id, organization.id, [Role.PRODUCT_MANAGER])
        assert exc_info.value.role == Role.ADMIN

    def test_minimum_mode(self, db, organization, manager):
        authorize(db, manager.id, organization.id, [Role.CONTRIBUTOR], RoleCheck.MINIMUM)
        with pytest.raises(InsufficientRoleError):
            authorize(db, manager.id, organization.id, [Role.ADMIN], RoleCheck.MINIMUM)

    def test_organization_level_row_wins(self, db, organization, contributor):
        """Test that a higher team-level role does not leak into organization checks."""
        team = organization.teams[0]
        db.add(models.Membership(
            user_id=contributor.id,
            organization_id=organization.id,
            team_id=team.id,
            role=Role.ADMIN,
        ))
        db.commit()

        with pytest.raises(InsufficientRoleError):
            require_role(db, contributor.id, organization.id, ADMIN_ONLY)

    def test_deleted_organization_denies(self, db, admin, organization):
        organization.soft_delete()
        db.commit()

        with pytest.raises(NotAMemberError):
            require_role(db, admin.id, organization.id, ADMIN_ONLY)


class TestLoadedMembershipChecks:
    def test_has_role(self, db, organization, manager):
        db.refresh(manager)
        assert has_role(manager.memberships, organization.id, Role.CONTRIBUTOR)
        assert not has_role(manager.memberships, organization.id, Role.ADMIN)
        assert not has_role(manager.memberships, uuid4(), Role.STAKEHOLDER)

    def test_require_organization(self, db, organization, stakeholder, outsider):
        db.refresh(stakeholder)
        assert require_organization(stakeholder, organization.id).role == Role.STAKEHOLDER

        with pytest.raises(NotAMemberError):
            require_organization(outsider, organization.id)

    def test_require_organization_skips_deleted_organization(self, db, admin, organization):
        organization.soft_delete()
        db.commit()
        db.refresh(admin)

        with pytest.raises(NotAMemberError):
            require_organization(admin, organization.id)
