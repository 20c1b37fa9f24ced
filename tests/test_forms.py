"""Tests for form parsing and the first-error messages shown to users."""
from datetime import datetime

import pytest

from prodflow_core.errors import ValidationFailed
from prodflow_core.forms import parse_form, split_list, to_snake
from prodflow_core.schemas import (
    FeatureFlagCreate,
    IdeaCreate,
    OKRCreate,
    OrganizationUpdate,
    ProductCreate,
    ReleaseCreate,
    SignUpForm,
    SprintCreate,
    TeamCreate,
)

OWNER = "00000000-0000-0000-0000-000000000001"


def form_error(schema, form):
    with pytest.raises(ValidationFailed) as exc_info:
        parse_form(schema, form)
    return exc_info.value


class TestKeyHandling:
    def test_camel_case_keys_become_snake_case(self):
        assert to_snake("featureIds") == "feature_ids"
        assert to_snake("reachScore") == "reach_score"
        assert to_snake("already_snake") == "already_snake"

    def test_camel_case_form_fields(self):
        form = parse_form(IdeaCreate, {"title": "Dark mode", "description": "Night", "reachScore": "4"})
        assert form.reach_score == 4

    def test_empty_strings_fall_back_to_defaults(self):
        form = parse_form(IdeaCreate, {"title": "Dark mode", "description": "Night", "impactScore": ""})
        assert form.impact_score is None

    def test_values_are_stripped(self):
        form = parse_form(TeamCreate, {"name": "  Platform  ", "slug": "platform"})
        assert form.name == "Platform"


class TestErrorMessages:
    def test_short_password(self):
        error = form_error(SignUpForm, {"email": "ada@example.com", "password": "short"})
        assert error.message == "Password must be at least 8 characters"
        assert error.field == "password"

    def test_invalid_email(self):
        error = form_error(SignUpForm, {"email": "not-an-email", "password": "long-enough"})
        assert error.message == "Invalid email address"

    def test_email_is_lowercased(self):
        form = parse_form(SignUpForm, {"email": "Ada@Example.COM", "password": "long-enough"})
        assert form.email == "ada@example.com"

    def test_missing_title(self):
        error = form_error(IdeaCreate, {"description": "No title"})
        assert error.message == "Title is required"

    def test_empty_title_counts_as_missing(self):
        error = form_error(IdeaCreate, {"title": "", "description": "Blank title"})
        assert error.message == "Title is required"

    @pytest.mark.parametrize("field", ["reachScore", "impactScore", "confidenceScore", "effortScore"])
    def test_scores_out_of_range(self, field):
        error = form_error(IdeaCreate, {"title": "T", "description": "D", field: "6"})
        assert error.message == "Scores must be between 1 and 5"

    def test_zero_score_rejected(self):
        error = form_error(IdeaCreate, {"title": "T", "description": "D", "effortScore": "0"})
        assert error.message == "Scores must be between 1 and 5"

    def test_okr_needs_a_key_result(self):
        form = {"objective": "Grow", "quarter": "Q1", "year": "2026", "ownerId": OWNER, "keyResults": "[]"}
        assert form_error(OKRCreate, form).message == "At least one key result is required"

    def test_okr_without_key_results_field(self):
        form = {"objective": "Grow", "quarter": "Q1", "year": "2026", "ownerId": OWNER}
        assert form_error(OKRCreate, form).message == "At least one key result is required"

    def test_slug_format(self):
        assert form_error(OrganizationUpdate, {"slug": "Bad Slug"}).message == "Invalid slug format"
        assert form_error(TeamCreate, {"name": "Platform", "slug": "-edge-"}).message == "Invalid slug format"

    def test_team_slug_required(self):
        assert form_error(TeamCreate, {"name": "Platform"}).message == "Team slug is required"

    def test_flag_key_characters(self):
        error = form_error(FeatureFlagCreate, {"name": "New checkout", "key": "new checkout!"})
        assert error.message == "Key must contain only alphanumeric characters, hyphens, and underscores"

    def test_flag_rollout_range(self):
        error = form_error(FeatureFlagCreate, {"name": "New checkout", "key": "new-checkout", "rollout": "1.5"})
        assert error.message == "Rollout must be between 0 and 1"

    def test_product_key_format(self):
        error = form_error(ProductCreate, {"name": "Widget", "key": "wid-1"})
        assert error.message == "Product key must be uppercase letters and numbers only"

    def test_sprint_end_after_start(self):
        form = {"name": "S1", "startDate": "2026-11-10T00:00:00", "endDate": "2026-11-01T00:00:00"}
        assert form_error(SprintCreate, form).message == "End date must be after start date"

    def test_aware_datetimes_become_naive_utc(self):
        form = parse_form(SprintCreate, {
            "name": "S1",
            "startDate": "2026-11-01T02:00:00+02:00",
            "endDate": "2026-11-14T00:00:00Z",
        })
        assert form.start_date == datetime(2026, 11, 1, 0, 0)
        assert form.end_date.tzinfo is None


class TestListFields:
    def test_comma_separated(self):
        assert split_list("a, b,,c") == ["a", "b", "c"]

    def test_json_array(self):
        assert split_list('["x", "y"]') == ["x", "y"]

    def test_feature_ids_from_json_string(self):
        ids = '["00000000-0000-0000-0000-000000000001"]'
        form = parse_form(ReleaseCreate, {"name": "Spring", "version": "1.0.0", "featureIds": ids})
        assert len(form.feature_ids) == 1
