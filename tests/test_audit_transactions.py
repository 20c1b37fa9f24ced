"""Tests for the audit trail, soft deletes and the action transaction wrapper."""
from sqlalchemy.exc import OperationalError

from prodflow_core import models
from prodflow_core.actions import ideas, teams
from prodflow_core.audit import get_audit_trail, log_activity
from prodflow_core.errors import BusinessRuleViolation
from prodflow_core.results import ActionContext, ActionResult, action


class TestAuditTrail:
    def test_entries_survive_entity_deletion(self, db, ctx_for, admin, organization, product):
        idea = ideas.create_idea(ctx_for(admin), product.id, {"title": "Dark mode", "description": "Night"}).data
        ideas.delete_idea(ctx_for(admin), idea.id)

        rows, total = get_audit_trail(db, organization.id, entity_type="IDEA", entity_id=idea.id)

        assert total == 2
        assert [row.action for row in rows] == ["IDEA_DELETED", "IDEA_CREATED"]
        assert db.query(models.Idea).filter_by(id=idea.id).one().deleted_at is not None

    def test_pagination_and_user_filter(self, db, admin, organization, contributor):
        for n in range(5):
            log_activity(db, organization.id, "PING", "TEST", n, user_id=contributor.id)
        db.commit()

        rows, total = get_audit_trail(db, organization.id, user_id=contributor.id, skip=2, limit=2)

        assert total == 5
        assert len(rows) == 2

    def test_request_details_recorded(self, db, cache, admin, organization):
        ctx = ActionContext(db, user=admin, cache=cache, ip_address="203.0.113.9", user_agent="pytest")
        team = teams.create_team(ctx, organization.id, {"name": "Platform", "slug": "platform"}).data

        entry = db.query(models.AuditLog).filter_by(entity_id=str(team.id)).one()
        assert entry.ip_address == "203.0.113.9"
        assert entry.user_agent == "pytest"
        assert entry.metadata_ == {"name": "Platform", "slug": "platform"}


class TestActionWrapper:
    def test_domain_error_rolls_back_and_publishes_nothing(self, db, ctx_for, admin, organization, cache):
        @action("Failed to do the thing")
        def half_done(ctx):
            ctx.db.add(models.Team(organization_id=organization.id, name="Ghost", slug="ghost"))
            ctx.db.flush()
            ctx.revalidate("/ghost")
            raise BusinessRuleViolation("Nope")

        cache.paths.clear()
        result = half_done(ctx_for(admin))

        assert result == ActionResult.fail("Nope", "business_rule")
        assert db.query(models.Team).filter_by(slug="ghost").count() == 0
        assert cache.paths == []

    def test_database_error_reported_with_generic_message(self, ctx_for, admin):
        @action("Failed to do the thing")
        def broken(ctx):
            raise OperationalError("SELECT 1", {}, Exception("connection lost"))

        result = broken(ctx_for(admin))

        assert not result.success
        assert result.kind == "internal"
        assert result.error == "Failed to do the thing"

    def test_success_commits_then_publishes_each_path_once(self, db, ctx_for, admin, cache):
        @action("Failed to do the thing")
        def fine(ctx):
            ctx.revalidate("/a", "/b", "/a")
            return 42

        cache.paths.clear()
        result = fine(ctx_for(admin))

        assert result == ActionResult.ok(42)
        assert cache.paths == ["/a", "/b"]

    def test_unauthenticated_rejected_before_running(self, ctx_for):
        calls = []

        @action("Failed to do the thing")
        def guarded(ctx):
            calls.append(ctx)

        result = guarded(ctx_for(None))

        assert result.kind == "authentication"
        assert calls == []
