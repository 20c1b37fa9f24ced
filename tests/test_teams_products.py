"""Tests for team and product actions."""
from prodflow_core import models
from prodflow_core.actions import experiments, ideas, products, teams
from prodflow_core.models import LifecycleStage


def audit_actions(db, action):
    return db.query(models.AuditLog).filter_by(action=action).all()


class TestTeams:
    def test_create_team(self, db, ctx_for, admin, organization, cache):
        result = teams.create_team(ctx_for(admin), organization.id, {"name": "Platform", "slug": "platform"})

        assert result.success, result.error
        assert result.data.slug == "platform"
        assert f"/organizations/{organization.id}/teams" in cache.paths
        assert len(audit_actions(db, "TEAM_CREATED")) == 1

    def test_default_slug_is_taken(self, ctx_for, admin, organization):
        result = teams.create_team(ctx_for(admin), organization.id, {"name": "General 2", "slug": "general"})

        assert result.kind == "conflict"
        assert result.error == "Team slug already exists in this organization"

    def test_conflict_leaves_no_row_or_audit_entry(self, db, ctx_for, admin, organization):
        teams.create_team(ctx_for(admin), organization.id, {"name": "Platform", "slug": "platform"})
        result = teams.create_team(ctx_for(admin), organization.id, {"name": "Other", "slug": "platform"})

        assert not result.success
        assert db.query(models.Team).filter_by(slug="platform").count() == 1
        assert len(audit_actions(db, "TEAM_CREATED")) == 1

    def test_deleted_team_frees_slug(self, ctx_for, admin, organization):
        created = teams.create_team(ctx_for(admin), organization.id, {"name": "Platform", "slug": "platform"})
        assert teams.delete_team(ctx_for(admin), created.data.id).success

        again = teams.create_team(ctx_for(admin), organization.id, {"name": "Platform", "slug": "platform"})

        assert again.success, again.error

    def test_contributor_cannot_create(self, ctx_for, organization, contributor):
        result = teams.create_team(ctx_for(contributor), organization.id, {"name": "Rogue", "slug": "rogue"})
        assert result.kind == "authorization"

    def test_manager_cannot_delete(self, ctx_for, organization, manager):
        team = organization.teams[0]
        result = teams.delete_team(ctx_for(manager), team.id)
        assert result.kind == "authorization"

    def test_team_with_products_cannot_be_deleted(self, ctx_for, admin, organization):
        team = organization.teams[0]
        created = products.create_product(
            ctx_for(admin), organization.id, {"name": "Gadget", "key": "GAD", "teamId": str(team.id)}
        )
        assert created.success, created.error

        result = teams.delete_team(ctx_for(admin), team.id)

        assert result.kind == "business_rule"
        assert result.error == (
            "Cannot delete team with active products. Please reassign or delete products first."
        )

    def test_team_membership(self, db, ctx_for, admin, organization, contributor, outsider):
        team = organization.teams[0]

        added = teams.add_team_member(ctx_for(admin), team.id, {"userId": str(contributor.id), "role": "CONTRIBUTOR"})
        assert added.success, added.error
        assert [m.user_id for m in teams.list_team_members(db, team.id)] == [contributor.id]

        duplicate = teams.add_team_member(ctx_for(admin), team.id, {"userId": str(contributor.id), "role": "CONTRIBUTOR"})
        assert duplicate.error == "User is already a team member"

        stranger = teams.add_team_member(ctx_for(admin), team.id, {"userId": str(outsider.id), "role": "CONTRIBUTOR"})
        assert stranger.error == "User is not a member of this organization"


class TestProducts:
    def test_create_product(self, db, product, organization):
        assert product.key == "WID"
        assert product.lifecycle == LifecycleStage.IDEATION
        assert products.list_products(db, organization.id) == [product]

    def test_key_is_unique(self, ctx_for, admin, organization, product):
        result = products.create_product(ctx_for(admin), organization.id, {"name": "Again", "key": "WID"})

        assert result.kind == "conflict"
        assert result.error == "Product key already exists"

    def test_contributor_cannot_create(self, ctx_for, organization, contributor):
        result = products.create_product(ctx_for(contributor), organization.id, {"name": "Mine", "key": "MINE"})
        assert result.kind == "authorization"

    def test_update_lifecycle_any_direction(self, ctx_for, admin, product):
        forward = products.update_product_lifecycle(ctx_for(admin), product.id, {"lifecycle": "SUNSET"})
        back = products.update_product_lifecycle(ctx_for(admin), product.id, {"lifecycle": "DISCOVERY"})

        assert forward.success and back.success
        assert back.data.lifecycle == LifecycleStage.DISCOVERY

    def test_delete_blocked_by_items(self, ctx_for, admin, product):
        ideas.create_idea(ctx_for(admin), product.id, {"title": "Dark mode", "description": "Night"})
        products.create_feature(ctx_for(admin), product.id, {"title": "Export"})

        result = products.delete_product(ctx_for(admin), product.id)

        assert result.kind == "business_rule"
        assert result.error == (
            "Cannot delete product with 2 associated items. "
            "Please clean up features, ideas, experiments, and releases first."
        )

    def test_delete_blocked_by_experiment(self, ctx_for, admin, product):
        experiments.create_experiment(ctx_for(admin), product.id, {"name": "Pricing", "hypothesis": "Cheaper sells"})

        result = products.delete_product(ctx_for(admin), product.id)

        assert result.kind == "business_rule"
        assert result.error.startswith("Cannot delete product with 1 associated items.")

    def test_delete_empty_product(self, db, ctx_for, admin, organization, product):
        result = products.delete_product(ctx_for(admin), product.id)

        assert result.success, result.error
        assert products.list_products(db, organization.id) == []

    def test_manager_cannot_delete(self, ctx_for, product, manager):
        result = products.delete_product(ctx_for(manager), product.id)
        assert result.kind == "authorization"

    def test_stakeholder_sees_role_error_not_missing_product(self, ctx_for, product, stakeholder):
        result = products.update_product(ctx_for(stakeholder), product.id, {"name": "Renamed"})
        assert result.error == "Access denied: Insufficient permissions"

    def test_outsider(self, ctx_for, product, outsider):
        result = products.update_product(ctx_for(outsider), product.id, {"name": "Renamed"})
        assert result.error == "Access denied: Not a member of this organization"
