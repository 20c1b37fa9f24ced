"""Shared fixtures: an in-memory database, users, an organization and a product."""
import pytest

from prodflow_core import models
from prodflow_core.actions import organizations, products
from prodflow_core.auth import hash_password
from prodflow_core.cache import RecordingInvalidator
from prodflow_core.database import Database
from prodflow_core.models import Role
from prodflow_core.results import ActionContext

# bcrypt's minimum cost keeps the suite fast
TEST_ROUNDS = 4


@pytest.fixture
def database():
    database = Database("sqlite://")
    database.create_all()
    yield database
    database.dispose()


@pytest.fixture
def db(database):
    session = database.session()
    yield session
    session.close()


@pytest.fixture
def cache():
    return RecordingInvalidator()


@pytest.fixture
def make_user(db):
    def _make(email, name=None, password="correct-horse"):
        user = models.User(
            email=email,
            name=name,
            password_hash=hash_password(password, rounds=TEST_ROUNDS),
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def ctx_for(db, cache):
    def _ctx(user=None):
        return ActionContext(db, user=user, cache=cache)

    return _ctx


@pytest.fixture
def admin(make_user):
    return make_user("ada@example.com", "Ada Admin")


@pytest.fixture
def organization(ctx_for, admin):
    result = organizations.create_organization(ctx_for(admin), {"name": "Acme Labs"})
    assert result.success, result.error
    return result.data


@pytest.fixture
def add_member(db, organization, make_user):
    """Create a user holding an organization-level role in ``organization``."""
    def _add(email, role):
        user = make_user(email)
        db.add(models.Membership(user_id=user.id, organization_id=organization.id, role=role))
        db.commit()
        return user

    return _add


@pytest.fixture
def manager(add_member):
    return add_member("pat@example.com", Role.PRODUCT_MANAGER)


@pytest.fixture
def contributor(add_member):
    return add_member("cole@example.com", Role.CONTRIBUTOR)


@pytest.fixture
def stakeholder(add_member):
    return add_member("sam@example.com", Role.STAKEHOLDER)


@pytest.fixture
def outsider(make_user):
    return make_user("olga@elsewhere.test")


@pytest.fixture
def product(ctx_for, admin, organization):
    result = products.create_product(ctx_for(admin), organization.id, {"name": "Widget", "key": "WID"})
    assert result.success, result.error
    return result.data
