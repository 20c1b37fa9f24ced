"""Tests for sprint and task actions."""
import pytest

from prodflow_core import models
from prodflow_core.actions import products, sprints, tasks
from prodflow_core.models import SprintStatus, TaskStatus

SPRINT_FORM = {
    "name": "Sprint 1",
    "goal": "Ship onboarding",
    "startDate": "2026-11-02T00:00:00",
    "endDate": "2026-11-16T00:00:00",
    "capacity": "20",
}


@pytest.fixture
def sprint(ctx_for, manager, product):
    result = sprints.create_sprint(ctx_for(manager), product.id, SPRINT_FORM)
    assert result.success, result.error
    return result.data


@pytest.fixture
def make_task(ctx_for, contributor, product):
    def _make(title, effort=None, **extra):
        form = {"title": title, **extra}
        if effort is not None:
            form["effort"] = str(effort)
        result = tasks.create_task(ctx_for(contributor), product.id, form)
        assert result.success, result.error
        return result.data

    return _make


def started(ctx, sprint, *task_list):
    added = sprints.add_tasks_to_sprint(ctx, sprint.id, {"taskIds": ",".join(str(t.id) for t in task_list)})
    assert added.success, added.error
    result = sprints.start_sprint(ctx, sprint.id)
    assert result.success, result.error
    return result.data


class TestCreateSprint:
    def test_created_planned(self, sprint):
        assert sprint.status == SprintStatus.PLANNED
        assert sprint.velocity is None

    def test_contributor_cannot_create(self, ctx_for, contributor, product):
        result = sprints.create_sprint(ctx_for(contributor), product.id, SPRINT_FORM)
        assert result.kind == "authorization"

    def test_end_before_start(self, ctx_for, manager, product):
        form = {**SPRINT_FORM, "endDate": "2026-11-01T00:00:00"}
        result = sprints.create_sprint(ctx_for(manager), product.id, form)

        assert result.kind == "validation"
        assert result.error == "End date must be after start date"

    def test_blocked_while_another_is_active(self, ctx_for, manager, product, sprint, make_task):
        started(ctx_for(manager), sprint, make_task("Login"))

        result = sprints.create_sprint(ctx_for(manager), product.id, {**SPRINT_FORM, "name": "Sprint 2"})

        assert result.kind == "business_rule"
        assert result.error == (
            "There is already an active sprint. Complete or cancel it before creating a new one."
        )


class TestStartAndComplete:
    def test_start_requires_tasks(self, ctx_for, manager, sprint):
        result = sprints.start_sprint(ctx_for(manager), sprint.id)

        assert result.error == "Cannot start sprint without tasks. Add tasks to the sprint first."

    def test_only_planned_can_start(self, ctx_for, manager, sprint, make_task):
        started(ctx_for(manager), sprint, make_task("Login"))

        result = sprints.start_sprint(ctx_for(manager), sprint.id)

        assert result.error == "Only planned sprints can be started"

    def test_only_active_can_complete(self, ctx_for, manager, sprint):
        result = sprints.complete_sprint(ctx_for(manager), sprint.id)
        assert result.error == "Only active sprints can be completed"

    def test_complete_records_velocity_and_returns_unfinished(self, db, ctx_for, manager, contributor, sprint, make_task):
        done = make_task("Login", effort=5)
        also_done = make_task("Logout", effort=3)
        open_task = make_task("Profile", effort=8)
        started(ctx_for(manager), sprint, done, also_done, open_task)
        for task in (done, also_done):
            assert tasks.update_task_status(ctx_for(contributor), task.id, {"status": "DONE"}).success

        result = sprints.complete_sprint(ctx_for(manager), sprint.id, {"incompleteTaskAction": "move_to_backlog"})

        assert result.success, result.error
        assert result.data.status == SprintStatus.COMPLETED
        assert result.data.velocity == 8
        db.refresh(open_task)
        assert open_task.sprint_id is None
        db.refresh(done)
        assert done.sprint_id == sprint.id

    def test_keep_in_sprint(self, db, ctx_for, manager, sprint, make_task):
        open_task = make_task("Profile", effort=8)
        started(ctx_for(manager), sprint, open_task)

        result = sprints.complete_sprint(
            ctx_for(manager), sprint.id, {"incompleteTaskAction": "keep_in_sprint"}
        )

        assert result.data.velocity == 0
        db.refresh(open_task)
        assert open_task.sprint_id == sprint.id

    def test_unfinished_tasks_stay_when_action_omitted(self, db, ctx_for, manager, sprint, make_task):
        open_task = make_task("Profile", effort=8)
        started(ctx_for(manager), sprint, open_task)

        result = sprints.complete_sprint(ctx_for(manager), sprint.id, {})

        assert result.success, result.error
        assert result.data.status == SprintStatus.COMPLETED
        db.refresh(open_task)
        assert open_task.sprint_id == sprint.id

    def test_status_edit_cannot_activate(self, ctx_for, manager, sprint):
        result = sprints.update_sprint(ctx_for(manager), sprint.id, {"status": "ACTIVE"})

        assert result.kind == "business_rule"
        assert "Use the start operation" in result.error

    def test_update_dates_checked_against_stored_values(self, ctx_for, manager, sprint):
        result = sprints.update_sprint(ctx_for(manager), sprint.id, {"endDate": "2026-11-01T00:00:00"})
        assert result.error == "End date must be after start date"

    def test_summary(self, db, ctx_for, manager, contributor, sprint, make_task):
        done = make_task("Login", effort=5)
        started(ctx_for(manager), sprint, done, make_task("Logout", effort=3))
        tasks.update_task_status(ctx_for(contributor), done.id, {"status": "DONE"})

        summary = sprints.sprint_summary(db, sprint)

        assert summary == {
            "total_tasks": 2,
            "completed_tasks": 1,
            "total_effort": 8,
            "completed_effort": 5,
            "capacity": 20,
        }


class TestSprintTasks:
    def test_foreign_task_rejected(self, db, ctx_for, admin, manager, organization, sprint):
        other = products.create_product(ctx_for(admin), organization.id, {"name": "Other", "key": "OTH"}).data
        foreign = tasks.create_task(ctx_for(admin), other.id, {"title": "Elsewhere"}).data

        result = sprints.add_tasks_to_sprint(ctx_for(manager), sprint.id, {"taskIds": str(foreign.id)})

        assert result.kind == "not_found"
        assert result.error == "Some tasks not found or don't belong to this product"

    def test_cannot_add_to_completed_sprint(self, ctx_for, manager, sprint, make_task):
        started(ctx_for(manager), sprint, make_task("Login"))
        sprints.complete_sprint(ctx_for(manager), sprint.id)

        result = sprints.add_tasks_to_sprint(ctx_for(manager), sprint.id, {"taskIds": str(make_task("Late").id)})

        assert result.error == "Cannot add tasks to completed or cancelled sprint"

    def test_remove_from_sprint(self, ctx_for, manager, contributor, sprint, make_task):
        task = make_task("Login")
        sprints.add_tasks_to_sprint(ctx_for(manager), sprint.id, {"taskIds": str(task.id)})

        result = sprints.remove_task_from_sprint(ctx_for(contributor), task.id)

        assert result.success, result.error
        assert result.data.sprint_id is None
        again = sprints.remove_task_from_sprint(ctx_for(contributor), task.id)
        assert again.error == "Task is not assigned to any sprint"

    def test_cannot_remove_from_completed_sprint(self, db, ctx_for, manager, contributor, sprint, make_task):
        task = make_task("Login", effort=1)
        started(ctx_for(manager), sprint, task)
        tasks.update_task_status(ctx_for(contributor), task.id, {"status": "DONE"})
        sprints.complete_sprint(ctx_for(manager), sprint.id)

        result = sprints.remove_task_from_sprint(ctx_for(contributor), task.id)

        assert result.error == "Cannot remove tasks from completed sprint"

    def test_delete_active_sprint_refused(self, ctx_for, manager, sprint, make_task):
        started(ctx_for(manager), sprint, make_task("Login"))

        result = sprints.delete_sprint(ctx_for(manager), sprint.id)

        assert result.error == "Cannot delete active sprint. Complete or cancel it first."

    def test_delete_returns_tasks_to_backlog(self, db, ctx_for, manager, product, sprint, make_task):
        task = make_task("Login")
        sprints.add_tasks_to_sprint(ctx_for(manager), sprint.id, {"taskIds": str(task.id)})

        assert sprints.delete_sprint(ctx_for(manager), sprint.id).success

        assert sprints.list_sprints(db, product.id) == []
        assert tasks.list_tasks(db, product.id, backlog_only=True) == [task]

    def test_sprint_audit_trail(self, db, ctx_for, manager, sprint, make_task):
        started(ctx_for(manager), sprint, make_task("Login"))

        actions = [
            entry.action
            for entry in db.query(models.AuditLog).filter_by(entity="SPRINT", entity_id=str(sprint.id))
            .order_by(models.AuditLog.created_at)
        ]
        assert actions == ["CREATE", "ADD_TASKS", "START"]


class TestTasks:
    def test_created_in_backlog(self, make_task):
        task = make_task("Login", effort=3)
        assert task.status == TaskStatus.NEW
        assert task.sprint_id is None

    def test_create_into_closed_sprint_refused(self, ctx_for, manager, contributor, product, sprint):
        assert sprints.update_sprint(ctx_for(manager), sprint.id, {"status": "CANCELLED"}).success

        result = tasks.create_task(ctx_for(contributor), product.id, {"title": "Late", "sprintId": str(sprint.id)})

        assert result.error == "Cannot add tasks to completed or cancelled sprint"

    def test_assignee_must_be_member(self, ctx_for, contributor, outsider, make_task):
        task = make_task("Login")

        refused = tasks.update_task_assignee(ctx_for(contributor), task.id, {"assigneeId": str(outsider.id)})
        assert refused.error == "Assignee is not a member of this organization"

        assigned = tasks.update_task_assignee(ctx_for(contributor), task.id, {"assigneeId": str(contributor.id)})
        assert assigned.data.assignee_id == contributor.id

        cleared = tasks.update_task_assignee(ctx_for(contributor), task.id, {})
        assert cleared.data.assignee_id is None

    def test_move_between_sprint_and_backlog(self, db, ctx_for, contributor, product, sprint, make_task):
        task = make_task("Login")

        moved = tasks.move_task_to_sprint(ctx_for(contributor), task.id, {"sprintId": str(sprint.id)})
        assert moved.data.sprint_id == sprint.id
        assert tasks.list_tasks(db, product.id, sprint_id=sprint.id) == [task]

        back = tasks.move_task_to_sprint(ctx_for(contributor), task.id, {})
        assert back.data.sprint_id is None

    def test_time_tracking(self, ctx_for, contributor, make_task):
        task = make_task("Login")

        result = tasks.update_task_time(ctx_for(contributor), task.id, {"timeSpent": "90", "timeEstimate": "120"})

        assert result.data.time_spent == 90
        assert result.data.time_estimate == 120

    def test_delete_needs_manager(self, db, ctx_for, contributor, manager, product, make_task):
        task = make_task("Login")

        assert tasks.delete_task(ctx_for(contributor), task.id).kind == "authorization"
        assert tasks.delete_task(ctx_for(manager), task.id).success
        assert tasks.list_tasks(db, product.id) == []
