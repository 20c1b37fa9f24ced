"""Tests for customer discovery and account actions."""
from datetime import timedelta

import pytest

from prodflow_core import models
from prodflow_core.actions import accounts, interviews, products
from prodflow_core.auth import hash_token, resolve_session
from prodflow_core.models import InterviewStatus, utcnow


def in_days(days):
    return (utcnow() + timedelta(days=days)).isoformat()


@pytest.fixture
def customer(ctx_for, contributor, product):
    result = interviews.create_customer(ctx_for(contributor), product.id, {
        "name": "Grace",
        "email": "grace@customer.test",
        "company": "Navy",
        "attributes": '{"plan": "pro"}',
    })
    assert result.success, result.error
    return result.data


@pytest.fixture
def interview(ctx_for, manager, product, customer):
    result = interviews.create_interview(ctx_for(manager), product.id, {
        "customerId": str(customer.id),
        "title": "Onboarding pains",
        "scheduledAt": in_days(3),
        "questions": '["What slowed you down?"]',
    })
    assert result.success, result.error
    return result.data


class TestDiscovery:
    def test_customer_attributes(self, customer):
        assert customer.attributes == {"plan": "pro"}

    def test_interview_scheduled_by_actor(self, interview, manager):
        assert interview.status == InterviewStatus.SCHEDULED
        assert interview.conductor_id == manager.id
        assert interview.duration == 60
        assert interview.questions == ["What slowed you down?"]

    def test_interview_must_be_in_future(self, ctx_for, manager, product, customer):
        result = interviews.create_interview(ctx_for(manager), product.id, {
            "customerId": str(customer.id),
            "title": "Too late",
            "scheduledAt": in_days(-1),
        })

        assert result.kind == "validation"
        assert result.error == "Interview must be scheduled in the future"

    def test_customer_must_belong_to_product(self, ctx_for, admin, manager, organization, customer):
        other = products.create_product(ctx_for(admin), organization.id, {"name": "Other", "key": "OTH"}).data

        result = interviews.create_interview(ctx_for(manager), other.id, {
            "customerId": str(customer.id),
            "title": "Wrong product",
            "scheduledAt": in_days(2),
        })

        assert result.kind == "not_found"
        assert result.error == "Customer not found"

    def test_contributor_cannot_schedule(self, ctx_for, contributor, product, customer):
        result = interviews.create_interview(ctx_for(contributor), product.id, {
            "customerId": str(customer.id),
            "title": "Mine",
            "scheduledAt": in_days(2),
        })
        assert result.kind == "authorization"

    def test_complete_interview(self, ctx_for, manager, interview):
        result = interviews.update_interview(
            ctx_for(manager), interview.id, {"status": "COMPLETED", "notes": "Wants SSO"}
        )

        assert result.data.status == InterviewStatus.COMPLETED
        assert result.data.notes == "Wants SSO"

    def test_insight_inherits_interview_product(self, db, ctx_for, contributor, product, interview):
        result = interviews.create_insight(ctx_for(contributor), {
            "interviewId": str(interview.id),
            "title": "SSO blocks rollout",
            "description": "Enterprise buyers require SSO",
            "impact": "HIGH",
            "tags": "sso, enterprise",
        })

        assert result.success, result.error
        assert result.data.product_id == product.id
        assert result.data.tags == ["sso", "enterprise"]
        assert interviews.list_insights(db, product.id) == [result.data]

    def test_deleted_interview_hidden(self, db, ctx_for, manager, product, interview):
        assert interviews.delete_interview(ctx_for(manager), interview.id).success
        assert interviews.list_interviews(db, product.id) == []


class TestAccounts:
    def test_sign_up_and_sign_in(self, db, ctx_for):
        signed_up = accounts.sign_up(
            ctx_for(None), {"email": "Lin@Example.com", "password": "hunter22", "name": "Lin"}, password_rounds=4
        )
        assert signed_up.success, signed_up.error
        assert signed_up.data.email == "lin@example.com"
        assert signed_up.data.password_hash != "hunter22"

        signed_in = accounts.sign_in(ctx_for(None), {"email": "lin@example.com", "password": "hunter22"})

        assert signed_in.success, signed_in.error
        token = signed_in.data["token"]
        stored = db.query(models.SessionToken).one()
        assert stored.token_hash == hash_token(token)
        assert stored.token_hash != token
        assert resolve_session(db, token).id == signed_up.data.id

    def test_duplicate_email(self, ctx_for, admin):
        result = accounts.sign_up(ctx_for(None), {"email": admin.email, "password": "hunter22"}, password_rounds=4)

        assert result.kind == "conflict"
        assert result.error == "An account with this email already exists"

    def test_wrong_password(self, ctx_for, admin):
        result = accounts.sign_in(ctx_for(None), {"email": admin.email, "password": "wrong-password"})

        assert result.kind == "authentication"
        assert result.error == "Invalid email or password"

    def test_sign_out_revokes(self, db, ctx_for, admin):
        token = accounts.sign_in(ctx_for(None), {"email": admin.email, "password": "correct-horse"}).data["token"]

        assert accounts.sign_out(ctx_for(admin), token) is True
        assert resolve_session(db, token) is None
        assert accounts.sign_out(ctx_for(admin), token) is False

    def test_expired_session(self, db, ctx_for, admin):
        token = accounts.sign_in(
            ctx_for(None), {"email": admin.email, "password": "correct-horse"}, ttl_hours=1
        ).data["token"]
        stored = db.query(models.SessionToken).one()
        stored.expires_at = utcnow() - timedelta(seconds=1)
        db.commit()

        assert resolve_session(db, token) is None
