"""Tests for organization, membership and invitation actions."""
from datetime import timedelta

from prodflow_core import models
from prodflow_core.actions import organizations
from prodflow_core.actions.organizations import slugify
from prodflow_core.models import InvitationStatus, Role, utcnow


class TestCreateOrganization:
    def test_slug_from_name(self):
        assert slugify("Acme Labs!") == "acme-labs"
        assert slugify("  ") == "organization"

    def test_creator_becomes_admin_with_default_team(self, db, admin, organization, cache):
        assert organization.slug == "acme-labs"

        membership = db.query(models.Membership).filter_by(organization_id=organization.id).one()
        assert membership.user_id == admin.id
        assert membership.role == Role.ADMIN
        assert membership.team_id is None

        assert [team.slug for team in organization.teams] == ["general"]
        assert "/dashboard" in cache.paths
        assert "/organizations" in cache.paths

    def test_audited(self, db, admin, organization):
        entry = db.query(models.AuditLog).filter_by(action="ORGANIZATION_CREATED").one()
        assert entry.organization_id == organization.id
        assert entry.user_id == admin.id
        assert entry.entity == "ORGANIZATION"
        assert entry.entity_id == str(organization.id)

    def test_duplicate_name(self, ctx_for, admin, organization):
        result = organizations.create_organization(ctx_for(admin), {"name": "acme labs"})

        assert not result.success
        assert result.kind == "conflict"
        assert result.error == "Organization name already taken"

    def test_requires_authentication(self, ctx_for):
        result = organizations.create_organization(ctx_for(None), {"name": "Nobody Inc"})

        assert not result.success
        assert result.kind == "authentication"

    def test_missing_name(self, ctx_for, admin):
        result = organizations.create_organization(ctx_for(admin), {"name": ""})

        assert result.kind == "validation"
        assert result.error == "Organization name is required"

    def test_listed_for_member_only(self, db, admin, organization, outsider):
        assert organizations.list_user_organizations(db, admin.id) == [organization]
        assert organizations.list_user_organizations(db, outsider.id) == []


class TestUpdateAndDelete:
    def test_admin_updates(self, ctx_for, admin, organization):
        result = organizations.update_organization(
            ctx_for(admin), organization.id, {"name": "Acme", "slug": "acme"}
        )

        assert result.success, result.error
        assert result.data.slug == "acme"

    def test_manager_cannot_update(self, ctx_for, organization, manager):
        result = organizations.update_organization(ctx_for(manager), organization.id, {"name": "Mine"})

        assert result.kind == "authorization"
        assert result.error == "Access denied: Insufficient permissions"

    def test_single_admin_blocks_delete(self, ctx_for, admin, organization):
        result = organizations.delete_organization(ctx_for(admin), organization.id)

        assert result.kind == "business_rule"
        assert result.error == "Cannot delete organization. At least one admin must remain."

    def test_delete_with_second_admin(self, db, ctx_for, admin, organization, add_member):
        add_member("second@example.com", Role.ADMIN)

        result = organizations.delete_organization(ctx_for(admin), organization.id)

        assert result.success, result.error
        db.refresh(organization)
        assert organization.deleted_at is not None
        assert organizations.get_organization(db, organization.id) is None


class TestInvitations:
    def test_invite_and_accept(self, db, ctx_for, admin, organization, make_user):
        invited = organizations.invite_user(
            ctx_for(admin), organization.id, {"email": "New@Example.com", "role": "CONTRIBUTOR"}
        )
        assert invited.success, invited.error
        invitation = invited.data
        assert invitation.email == "new@example.com"
        assert invitation.status == InvitationStatus.PENDING

        newcomer = make_user("new@example.com")
        accepted = organizations.accept_invitation(ctx_for(newcomer), {"token": invitation.token})

        assert accepted.success, accepted.error
        assert accepted.data.role == Role.CONTRIBUTOR
        db.refresh(invitation)
        assert invitation.status == InvitationStatus.ACCEPTED
        assert invitation.accepted_at is not None

    def test_invite_is_admin_only(self, ctx_for, organization, manager):
        result = organizations.invite_user(
            ctx_for(manager), organization.id, {"email": "x@example.com", "role": "CONTRIBUTOR"}
        )
        assert result.kind == "authorization"

    def test_duplicate_pending_invitation(self, ctx_for, admin, organization):
        form = {"email": "dup@example.com", "role": "STAKEHOLDER"}
        organizations.invite_user(ctx_for(admin), organization.id, form)

        result = organizations.invite_user(ctx_for(admin), organization.id, form)

        assert result.kind == "conflict"
        assert result.error == "Invitation already sent to this email"

    def test_existing_member_cannot_be_invited(self, ctx_for, admin, organization, contributor):
        result = organizations.invite_user(
            ctx_for(admin), organization.id, {"email": contributor.email, "role": "ADMIN"}
        )
        assert result.error == "User is already a member of this organization"

    def test_wrong_email(self, ctx_for, admin, organization, outsider):
        invitation = organizations.invite_user(
            ctx_for(admin), organization.id, {"email": "someone@example.com", "role": "CONTRIBUTOR"}
        ).data

        result = organizations.accept_invitation(ctx_for(outsider), {"token": invitation.token})

        assert result.kind == "validation"
        assert result.error == "This invitation was sent to a different email address"

    def test_expired(self, db, ctx_for, admin, organization, outsider):
        invitation = organizations.invite_user(
            ctx_for(admin), organization.id, {"email": outsider.email, "role": "CONTRIBUTOR"}
        ).data
        invitation.expires_at = utcnow() - timedelta(minutes=1)
        db.commit()

        result = organizations.accept_invitation(ctx_for(outsider), {"token": invitation.token})

        assert result.kind == "business_rule"
        assert result.error == "Invitation has expired"

    def test_expired_not_listed(self, db, ctx_for, admin, organization):
        stale = organizations.invite_user(
            ctx_for(admin), organization.id, {"email": "stale@example.com", "role": "CONTRIBUTOR"}
        ).data
        fresh = organizations.invite_user(
            ctx_for(admin), organization.id, {"email": "fresh@example.com", "role": "CONTRIBUTOR"}
        ).data
        stale.expires_at = utcnow() - timedelta(minutes=1)
        db.commit()

        listed = organizations.list_invitations(db, organization.id)

        assert [invitation.id for invitation in listed] == [fresh.id]

    def test_unknown_token(self, ctx_for, outsider):
        result = organizations.accept_invitation(ctx_for(outsider), {"token": "nope"})
        assert result.kind == "not_found"


class TestMembers:
    def test_cannot_remove_self(self, ctx_for, admin, organization):
        result = organizations.remove_member(ctx_for(admin), organization.id, admin.id)
        assert result.error == "Cannot remove yourself from the organization"

    def test_remove_member(self, db, ctx_for, admin, organization, contributor):
        result = organizations.remove_member(ctx_for(admin), organization.id, contributor.id)

        assert result.success, result.error
        assert [m.user_id for m in organizations.list_members(db, organization.id)] == [admin.id]

    def test_cannot_change_own_role(self, ctx_for, admin, organization):
        result = organizations.update_member_role(ctx_for(admin), organization.id, admin.id, {"role": "CONTRIBUTOR"})
        assert result.error == "Cannot change your own role"

    def test_update_role_records_change(self, db, ctx_for, admin, organization, contributor):
        result = organizations.update_member_role(
            ctx_for(admin), organization.id, contributor.id, {"role": "PRODUCT_MANAGER"}
        )

        assert result.success, result.error
        assert result.data.role == Role.PRODUCT_MANAGER
        entry = db.query(models.AuditLog).filter_by(action="MEMBER_ROLE_UPDATED").one()
        assert entry.changes == {"role": {"from": "CONTRIBUTOR", "to": "PRODUCT_MANAGER"}}
