"""Tests for releases, changelogs, launch checklists and feature flags."""
import json

import pytest

from prodflow_core import models
from prodflow_core.actions import feature_flags, launch_checklist, products, releases
from prodflow_core.actions.launch_checklist import CHECKLIST_TEMPLATES
from prodflow_core.models import ChangelogVisibility, ReleaseStatus


@pytest.fixture
def feature(ctx_for, admin, product):
    return products.create_feature(ctx_for(admin), product.id, {"title": "Export to CSV"}).data


@pytest.fixture
def release(ctx_for, manager, product, feature):
    result = releases.create_release(ctx_for(manager), product.id, {
        "name": "Autumn",
        "version": "1.4.0",
        "type": "MINOR",
        "featureIds": json.dumps([str(feature.id)]),
    })
    assert result.success, result.error
    return result.data


class TestReleases:
    def test_created_planned_with_features(self, db, release, feature):
        assert release.status == ReleaseStatus.PLANNED
        assert release.release_date is None
        db.refresh(feature)
        assert feature.release_id == release.id

    def test_features_of_other_products_ignored(self, db, ctx_for, admin, manager, organization, product):
        other = products.create_product(ctx_for(admin), organization.id, {"name": "Other", "key": "OTH"}).data
        foreign = products.create_feature(ctx_for(admin), other.id, {"title": "Elsewhere"}).data

        result = releases.create_release(
            ctx_for(manager), product.id, {"name": "R", "version": "0.1", "featureIds": str(foreign.id)}
        )

        assert result.success, result.error
        db.refresh(foreign)
        assert foreign.release_id is None

    def test_contributor_cannot_create(self, ctx_for, contributor, product):
        result = releases.create_release(ctx_for(contributor), product.id, {"name": "R", "version": "0.1"})
        assert result.kind == "authorization"

    def test_deploy_stamps_release_date(self, ctx_for, manager, release, cache):
        result = releases.deploy_release(ctx_for(manager), release.id)

        assert result.success, result.error
        assert result.data.status == ReleaseStatus.RELEASED
        assert result.data.release_date is not None
        assert f"/products/{release.product_id}/changelog" in cache.paths

    def test_released_is_immutable(self, ctx_for, manager, release):
        releases.deploy_release(ctx_for(manager), release.id)

        result = releases.update_release_status(ctx_for(manager), release.id, {"status": "PLANNED"})

        assert result.kind == "business_rule"
        assert "Released versions are immutable" in result.error

    def test_cancelled_must_be_replanned_before_shipping(self, ctx_for, manager, release):
        assert releases.update_release_status(ctx_for(manager), release.id, {"status": "CANCELLED"}).success

        assert not releases.deploy_release(ctx_for(manager), release.id).success
        assert releases.update_release(ctx_for(manager), release.id, {"status": "PLANNED", "notes": "Back on"}).success

    def test_delete_unlinks_features(self, db, ctx_for, manager, product, release, feature):
        assert releases.delete_release(ctx_for(manager), release.id).success

        db.refresh(feature)
        assert feature.release_id is None
        assert releases.list_releases(db, product.id) == []

    def test_add_feature(self, db, ctx_for, admin, manager, product, release):
        extra = products.create_feature(ctx_for(admin), product.id, {"title": "Import"}).data

        result = releases.add_feature_to_release(ctx_for(manager), release.id, {"featureId": str(extra.id)})

        assert result.data.release_id == release.id


class TestChangelog:
    def test_writers_create_entries(self, db, ctx_for, contributor, product, release):
        result = releases.create_changelog(ctx_for(contributor), product.id, {
            "title": "CSV export",
            "description": "Export any table",
            "visibility": "INTERNAL",
            "releaseId": str(release.id),
        })

        assert result.success, result.error
        assert releases.list_changelogs(db, product.id, ChangelogVisibility.INTERNAL) == [result.data]
        assert releases.list_changelogs(db, product.id, ChangelogVisibility.PUBLIC) == []

    def test_stakeholder_cannot_write(self, ctx_for, stakeholder, product):
        result = releases.create_changelog(ctx_for(stakeholder), product.id, {"title": "T", "description": "D"})
        assert result.kind == "authorization"


class TestLaunchChecklist:
    def test_template_sizes(self):
        assert {name: len(items) for name, items in CHECKLIST_TEMPLATES.items()} == {
            "BASIC": 8,
            "COMPREHENSIVE": 19,
            "ENTERPRISE": 31,
        }

    def test_apply_template(self, db, ctx_for, manager, release):
        result = launch_checklist.create_checklist_from_template(ctx_for(manager), release.id, {"template": "BASIC"})

        assert result.success, result.error
        progress = launch_checklist.checklist_progress(db, release.id)
        assert progress["total"] == 8
        assert progress["completed"] == 0
        assert progress["required"] == sum(1 for _, _, required in CHECKLIST_TEMPLATES["BASIC"] if required)
        assert progress["percent"] == 0.0

    def test_unknown_template(self, ctx_for, manager, release):
        result = launch_checklist.create_checklist_from_template(ctx_for(manager), release.id, {"template": "HUGE"})
        assert result.error == "Invalid template"

    def test_toggle_and_readiness(self, db, ctx_for, contributor, release):
        required = launch_checklist.create_checklist_item(
            ctx_for(contributor), release.id, {"title": "Run migrations", "isRequired": "true", "category": "DEPLOYMENT"}
        ).data
        launch_checklist.create_checklist_item(ctx_for(contributor), release.id, {"title": "Tweet"})

        assert launch_checklist.checklist_progress(db, release.id)["ready"] is False

        toggled = launch_checklist.toggle_checklist_item(ctx_for(contributor), required.id).data
        assert toggled.is_completed is True
        assert toggled.completed_at is not None

        progress = launch_checklist.checklist_progress(db, release.id)
        assert progress == {
            "total": 2,
            "completed": 1,
            "required": 1,
            "required_completed": 1,
            "percent": 50.0,
            "ready": True,
        }

        reopened = launch_checklist.toggle_checklist_item(ctx_for(contributor), required.id).data
        assert reopened.completed_at is None

    def test_empty_checklist_is_ready(self, db, release):
        progress = launch_checklist.checklist_progress(db, release.id)
        assert progress["ready"] is True
        assert progress["percent"] == 0.0

    def test_delete_needs_manager(self, ctx_for, contributor, manager, release):
        item = launch_checklist.create_checklist_item(ctx_for(contributor), release.id, {"title": "Tweet"}).data

        assert launch_checklist.delete_checklist_item(ctx_for(contributor), item.id).kind == "authorization"
        assert launch_checklist.delete_checklist_item(ctx_for(manager), item.id).success


class TestFeatureFlags:
    def make_flag(self, ctx, product, key="new-checkout", **extra):
        return feature_flags.create_feature_flag(ctx, product.id, {"name": "New checkout", "key": key, **extra})

    def test_create(self, ctx_for, contributor, product):
        result = self.make_flag(ctx_for(contributor), product, rollout="0.25", targeting='{"country": ["NZ"]}')

        assert result.success, result.error
        flag = result.data
        assert flag.enabled is False
        assert flag.rollout == 0.25
        assert flag.targeting == {"country": ["NZ"]}

    def test_duplicate_key(self, ctx_for, contributor, product):
        self.make_flag(ctx_for(contributor), product)

        result = self.make_flag(ctx_for(contributor), product)

        assert result.kind == "conflict"
        assert result.error == "A feature flag with this key already exists"

    def test_deleted_flag_frees_key(self, ctx_for, contributor, manager, product):
        flag = self.make_flag(ctx_for(contributor), product).data
        assert feature_flags.delete_feature_flag(ctx_for(manager), flag.id).success

        assert self.make_flag(ctx_for(contributor), product).success

    def test_toggle(self, ctx_for, contributor, product):
        flag = self.make_flag(ctx_for(contributor), product).data

        assert feature_flags.toggle_feature_flag(ctx_for(contributor), flag.id).data.enabled is True
        assert feature_flags.toggle_feature_flag(ctx_for(contributor), flag.id).data.enabled is False

    @pytest.mark.parametrize("rollout", ["-0.1", "1.01"])
    def test_rollout_out_of_range(self, ctx_for, contributor, product, rollout):
        flag = self.make_flag(ctx_for(contributor), product).data

        result = feature_flags.update_rollout(ctx_for(contributor), flag.id, {"rollout": rollout})

        assert result.kind == "validation"
        assert result.error == "Rollout must be between 0 and 1"

    def test_rollout_bounds_inclusive(self, ctx_for, contributor, product):
        flag = self.make_flag(ctx_for(contributor), product).data

        assert feature_flags.update_rollout(ctx_for(contributor), flag.id, {"rollout": "1"}).data.rollout == 1.0
        assert feature_flags.update_rollout(ctx_for(contributor), flag.id, {"rollout": "0"}).data.rollout == 0.0

    def test_rename_key_to_taken_key(self, ctx_for, contributor, product):
        self.make_flag(ctx_for(contributor), product, key="a")
        flag = self.make_flag(ctx_for(contributor), product, key="b").data

        result = feature_flags.update_feature_flag(ctx_for(contributor), flag.id, {"key": "a"})

        assert result.kind == "conflict"

    def test_stakeholder_read_only(self, db, ctx_for, stakeholder, contributor, product):
        flag = self.make_flag(ctx_for(contributor), product).data

        assert self.make_flag(ctx_for(stakeholder), product, key="other").kind == "authorization"
        assert feature_flags.toggle_feature_flag(ctx_for(stakeholder), flag.id).kind == "authorization"
        assert feature_flags.list_feature_flags(db, product.id) == [flag]
        assert db.query(models.FeatureFlag).count() == 1
