"""End-to-end tests for the HTTP API against an in-memory database."""
import pytest
from fastapi.testclient import TestClient

from prodflow_core import __version__
from prodflow_core.api.main import create_app
from prodflow_core.config import Settings


@pytest.fixture
def client(database):
    app = create_app(Settings(database_url="sqlite://"), database=database)
    with TestClient(app) as client:
        yield client


def sign_up_and_in(client, email, password="long-enough-pw"):
    response = client.post("/api/v1/auth/sign-up", data={"email": email, "password": password})
    assert response.status_code == 201, response.text
    response = client.post("/api/v1/auth/sign-in", data={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest.fixture
def alice(client):
    return sign_up_and_in(client, "alice@example.com")


@pytest.fixture
def org_id(client, alice):
    response = client.post("/api/v1/organizations/", data={"name": "Acme Labs"}, headers=alice)
    assert response.status_code == 201, response.text
    return response.json()["id"]


@pytest.fixture
def product_id(client, alice, org_id):
    response = client.post(
        f"/api/v1/organizations/{org_id}/products",
        json={"name": "Widget", "key": "WID"},
        headers=alice,
    )
    assert response.status_code == 201, response.text
    return response.json()["id"]


class TestServerInfo:
    def test_root(self, client):
        body = client.get("/").json()
        assert body["name"] == "Prodflow Core API"
        assert body["version"] == __version__

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy"}


class TestAuthEndpoints:
    def test_me(self, client, alice):
        response = client.get("/api/v1/auth/me", headers=alice)

        assert response.status_code == 200
        assert response.json()["email"] == "alice@example.com"

    def test_missing_token(self, client):
        response = client.get("/api/v1/organizations/")

        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"

    def test_bad_credentials(self, client, alice):
        response = client.post("/api/v1/auth/sign-in", data={"email": "alice@example.com", "password": "nope-nope"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid email or password"

    def test_short_password(self, client):
        response = client.post("/api/v1/auth/sign-up", data={"email": "bob@example.com", "password": "short"})

        assert response.status_code == 422
        assert response.json()["detail"] == "Password must be at least 8 characters"

    def test_duplicate_account(self, client, alice):
        response = client.post(
            "/api/v1/auth/sign-up", data={"email": "alice@example.com", "password": "long-enough-pw"}
        )
        assert response.status_code == 409

    def test_sign_out(self, client, alice):
        assert client.post("/api/v1/auth/sign-out", headers=alice).status_code == 204
        assert client.get("/api/v1/auth/me", headers=alice).status_code == 401


class TestOrganizationEndpoints:
    def test_create_and_list(self, client, alice, org_id):
        listed = client.get("/api/v1/organizations/", headers=alice).json()

        assert [org["id"] for org in listed] == [org_id]
        assert listed[0]["slug"] == "acme-labs"

    def test_non_member_forbidden(self, client, org_id):
        bob = sign_up_and_in(client, "bob@example.com")

        response = client.get(f"/api/v1/organizations/{org_id}/products", headers=bob)

        assert response.status_code == 403
        assert response.json()["detail"] == "Access denied: Not a member of this organization"


class TestProductAndIdeaEndpoints:
    def test_duplicate_product_key(self, client, alice, org_id, product_id):
        response = client.post(
            f"/api/v1/organizations/{org_id}/products", json={"name": "Again", "key": "WID"}, headers=alice
        )
        assert response.status_code == 409

    def test_unknown_product(self, client, alice):
        response = client.get("/api/v1/products/00000000-0000-0000-0000-000000000000", headers=alice)
        assert response.status_code == 404

    def test_ideas_sorted_by_score(self, client, alice, product_id):
        url = f"/api/v1/products/{product_id}/ideas"
        low = client.post(url, data={
            "title": "Low", "description": "d",
            "reachScore": "1", "impactScore": "1", "confidenceScore": "1", "effortScore": "5",
        }, headers=alice)
        high = client.post(url, data={
            "title": "High", "description": "d",
            "reachScore": "5", "impactScore": "3", "confidenceScore": "4", "effortScore": "2",
        }, headers=alice)
        assert low.status_code == high.status_code == 201

        titles = [idea["title"] for idea in client.get(url, headers=alice).json()]

        assert titles == ["High", "Low"]

    def test_invalid_score(self, client, alice, product_id):
        response = client.post(
            f"/api/v1/products/{product_id}/ideas",
            data={"title": "T", "description": "D", "effortScore": "9"},
            headers=alice,
        )
        assert response.status_code == 422
        assert response.json()["detail"] == "Scores must be between 1 and 5"

    def test_blocked_delete_is_bad_request(self, client, alice, product_id):
        client.post(f"/api/v1/products/{product_id}/ideas", data={"title": "T", "description": "D"}, headers=alice)

        response = client.delete(f"/api/v1/products/{product_id}", headers=alice)

        assert response.status_code == 400
        assert response.json()["detail"].startswith("Cannot delete product with 1 associated items.")


class TestPlanningEndpoints:
    def test_document_review_flow(self, client, alice, product_id):
        created = client.post(f"/api/v1/products/{product_id}/documents", data={
            "title": "Checkout PRD", "content": "Scope", "type": "PRD",
        }, headers=alice)
        assert created.status_code == 201
        document_id = created.json()["id"]

        submitted = client.post(f"/api/v1/documents/{document_id}/submit", headers=alice)
        again = client.post(f"/api/v1/documents/{document_id}/submit", headers=alice)
        approved = client.post(f"/api/v1/documents/{document_id}/approval", data={"action": "APPROVE"}, headers=alice)

        assert submitted.json()["status"] == "REVIEW"
        assert again.status_code == 400
        assert approved.json()["status"] == "APPROVED"

    def test_roadmap_bulk_update(self, client, alice, org_id, product_id):
        url = f"/api/v1/products/{product_id}/roadmap"
        ids = [
            client.post(url, data={"title": title, "quarter": "Q1"}, headers=alice).json()["id"]
            for title in ("One", "Two")
        ]

        response = client.post(f"/api/v1/organizations/{org_id}/roadmap/bulk", json={
            "itemIds": ids, "lane": "NOW", "quarter": "",
        }, headers=alice)

        assert response.status_code == 200
        assert response.json() == {"count": 2}
        items = client.get(url, params={"lane": "NOW"}, headers=alice).json()
        assert sorted(item["title"] for item in items) == ["One", "Two"]
        assert all(item["quarter"] is None for item in items)


class TestAuditEndpoint:
    def test_lists_newest_first(self, client, alice, org_id, product_id):
        response = client.get(f"/api/v1/organizations/{org_id}/audit", headers=alice)

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 2
        assert [item["action"] for item in body["items"]] == ["PRODUCT_CREATED", "ORGANIZATION_CREATED"]
        assert body["items"][0]["metadata"] == {"name": "Widget", "key": "WID"}

    def test_filter_and_page_size(self, client, alice, org_id, product_id):
        response = client.get(
            f"/api/v1/organizations/{org_id}/audit",
            params={"entity_type": "PRODUCT", "page_size": 1},
            headers=alice,
        )

        body = response.json()
        assert body["total"] == 1
        assert body["total_pages"] == 1
        assert body["items"][0]["entity_id"] == product_id

    def test_page_size_capped(self, client, alice, org_id):
        response = client.get(f"/api/v1/organizations/{org_id}/audit", params={"page_size": 500}, headers=alice)
        assert response.status_code == 422
