"""Tests for idea and OKR actions."""
import json
from types import SimpleNamespace

import pytest

from prodflow_core import models
from prodflow_core.actions import ideas, okrs
from prodflow_core.models import IdeaStatus, OKRStatus


@pytest.fixture
def idea(ctx_for, contributor, product):
    result = ideas.create_idea(ctx_for(contributor), product.id, {
        "title": "Dark mode",
        "description": "Let people work at night",
        "tags": "ui, accessibility",
        "reachScore": "3",
        "impactScore": "2",
        "confidenceScore": "3",
        "effortScore": "4",
    })
    assert result.success, result.error
    return result.data


def okr_form(owner, key_results=None, **extra):
    form = {
        "objective": "Grow activation",
        "quarter": "Q4",
        "year": "2026",
        "ownerId": str(owner.id),
        "keyResults": json.dumps(key_results if key_results is not None else [
            {"description": "Weekly actives", "target": 100, "current": 50},
            {"description": "Signups", "target": 10, "current": 20},
        ]),
    }
    form.update(extra)
    return form


class TestIdeas:
    def test_created_submitted_with_zero_votes(self, db, idea, contributor):
        assert idea.status == IdeaStatus.SUBMITTED
        assert idea.votes == 0
        assert idea.creator_id == contributor.id
        assert idea.tags == ["ui", "accessibility"]

    def test_stakeholder_cannot_create(self, ctx_for, product, stakeholder):
        result = ideas.create_idea(ctx_for(stakeholder), product.id, {"title": "Mine", "description": "D"})
        assert result.kind == "authorization"

    def test_creator_may_edit(self, ctx_for, idea, contributor):
        result = ideas.update_idea(ctx_for(contributor), idea.id, {"title": "Darker mode"})
        assert result.success, result.error
        assert result.data.title == "Darker mode"

    def test_manager_may_edit_others(self, ctx_for, idea, manager):
        assert ideas.update_idea(ctx_for(manager), idea.id, {"priority": "HIGH"}).success

    def test_other_contributor_may_not_edit(self, ctx_for, idea, add_member):
        other = add_member("other@example.com", models.Role.CONTRIBUTOR)

        result = ideas.update_idea(ctx_for(other), idea.id, {"title": "Hijacked"})

        assert result.kind == "authorization"
        assert result.error == "Permission denied: Cannot edit this idea"

    def test_only_creator_or_admin_may_delete(self, ctx_for, idea, admin, manager):
        denied = ideas.delete_idea(ctx_for(manager), idea.id)
        assert denied.error == "Permission denied: Cannot delete this idea"

        assert ideas.delete_idea(ctx_for(admin), idea.id).success

    def test_votes_never_go_negative(self, ctx_for, idea, contributor):
        assert ideas.downvote_idea(ctx_for(contributor), idea.id).data.votes == 0
        assert ideas.upvote_idea(ctx_for(contributor), idea.id).data.votes == 1
        assert ideas.upvote_idea(ctx_for(contributor), idea.id).data.votes == 2
        assert ideas.downvote_idea(ctx_for(contributor), idea.id).data.votes == 1

    def test_status_needs_manager(self, ctx_for, idea, contributor, manager):
        assert ideas.update_idea_status(ctx_for(contributor), idea.id, {"status": "APPROVED"}).kind == "authorization"

        result = ideas.update_idea_status(ctx_for(manager), idea.id, {"status": "APPROVED"})
        assert result.data.status == IdeaStatus.APPROVED

    def test_deleted_idea_not_listed(self, db, ctx_for, idea, admin, product):
        ideas.delete_idea(ctx_for(admin), idea.id)

        assert ideas.list_ideas(db, product.id) == []
        result = ideas.upvote_idea(ctx_for(admin), idea.id)
        assert result.kind == "not_found"

    def test_list_sorted_by_score(self, db, ctx_for, contributor, product, idea):
        best = ideas.create_idea(ctx_for(contributor), product.id, {
            "title": "Search", "description": "Find things",
            "reachScore": "5", "impactScore": "3", "confidenceScore": "4", "effortScore": "2",
        }).data
        unscored = ideas.create_idea(ctx_for(contributor), product.id, {"title": "Later", "description": "?"}).data

        assert ideas.list_ideas(db, product.id, "rice") == [best, idea, unscored]
        assert ideas.list_ideas(db, product.id, "recent")[0] == unscored


class TestOKRProgress:
    def kr(self, target, current):
        return SimpleNamespace(target=target, current=current)

    def test_mean_of_capped_ratios(self):
        assert okrs.compute_progress([self.kr(100, 50), self.kr(10, 20)]) == pytest.approx(0.75)

    def test_non_positive_target_counts_as_zero(self):
        assert okrs.compute_progress([self.kr(0, 5), self.kr(10, 10)]) == pytest.approx(0.5)

    def test_negative_current_clamped(self):
        assert okrs.compute_progress([self.kr(10, -5)]) == 0.0

    def test_no_key_results(self):
        assert okrs.compute_progress([]) == 0.0


class TestOKRs:
    def test_create_with_key_results(self, db, ctx_for, manager, product):
        result = okrs.create_okr(ctx_for(manager), product.id, okr_form(manager))

        assert result.success, result.error
        okr = result.data
        assert okr.status == OKRStatus.ACTIVE
        assert len(okr.key_results) == 2
        assert okr.progress == pytest.approx(0.75)

    def test_contributor_cannot_create(self, ctx_for, contributor, product):
        result = okrs.create_okr(ctx_for(contributor), product.id, okr_form(contributor))
        assert result.kind == "authorization"

    def test_owner_must_be_member(self, ctx_for, manager, product, outsider):
        result = okrs.create_okr(ctx_for(manager), product.id, okr_form(outsider))

        assert result.kind == "business_rule"
        assert result.error == "Owner must be a member of this organization"

    def test_key_result_update_recomputes_progress(self, db, ctx_for, manager, contributor, product):
        okr = okrs.create_okr(ctx_for(manager), product.id, okr_form(manager)).data
        first = sorted(okr.key_results, key=lambda kr: kr.target)[1]

        result = okrs.update_key_result(ctx_for(contributor), first.id, {"current": "100"})

        assert result.success, result.error
        db.refresh(okr)
        assert okr.progress == pytest.approx(1.0)

    def test_status_transitions_validated(self, ctx_for, manager, product):
        okr = okrs.create_okr(ctx_for(manager), product.id, okr_form(manager)).data
        assert okrs.update_okr(ctx_for(manager), okr.id, {"status": "ARCHIVED"}).success

        result = okrs.update_okr(ctx_for(manager), okr.id, {"status": "ACTIVE"})

        assert result.kind == "business_rule"
        assert "Archived OKRs cannot be reactivated" in result.error

    def test_delete_soft_deletes_key_results(self, db, ctx_for, manager, product):
        okr = okrs.create_okr(ctx_for(manager), product.id, okr_form(manager)).data

        assert okrs.delete_okr(ctx_for(manager), okr.id).success

        assert okrs.list_okrs(db, product.id) == []
        assert all(kr.deleted_at is not None for kr in okr.key_results)

    def test_list_filters_by_quarter(self, db, ctx_for, manager, product):
        okrs.create_okr(ctx_for(manager), product.id, okr_form(manager))
        okrs.create_okr(ctx_for(manager), product.id, okr_form(manager, quarter="Q1", year="2027"))

        assert [o.quarter for o in okrs.list_okrs(db, product.id, quarter="Q1")] == ["Q1"]
        assert len(okrs.list_okrs(db, product.id, year=2026)) == 1
