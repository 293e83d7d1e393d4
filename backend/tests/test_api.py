from __future__ import annotations

from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient

from flavorwheel.core.errors import PersistenceError
from flavorwheel.core.schemas.auth import AuthUser
from flavorwheel.dependencies import get_current_user
from flavorwheel.main import create_app

from .fakes import ScriptedClassifier

USER = AuthUser(id=UUID(int=42), email="taster@example.com")
ADMIN = AuthUser(id=UUID(int=7), email="Admin@Example.com")

TAXONOMY_REPLY = '{"baseTemplate": "spirits", "aromaCategories": ["Smoke", "Fruit"], "categories": {}}'


@pytest.fixture
def current_user():
    return {"user": USER}


@pytest.fixture
def build_client(make_services, current_user):
    def _build(classifier=None):
        services = make_services(classifier)
        app = create_app(services=services)
        app.dependency_overrides[get_current_user] = lambda: current_user["user"]
        return TestClient(app)

    return _build


@pytest.fixture
def client(build_client):
    return build_client()


def extract(client, note_text, **extra):
    body = {"source_type": "quick_tasting", "source_id": str(uuid4()), "note_text": note_text, **extra}
    return client.post("/api/v1/descriptors/extract", json=body)


class TestDescriptors:
    def test_extract_records_descriptors(self, client, descriptor_repo):
        resp = extract(client, "Cherry and oak, a hint of vanilla", item_category="Wine")

        assert resp.status_code == 200
        body = resp.json()
        assert body["method"] == "keyword"
        assert body["saved_count"] == 3
        assert {d["text"] for d in body["descriptors"]} == {"cherry", "oak", "vanilla"}
        assert all(r.user_id == USER.id for r in descriptor_repo.rows)

    def test_extract_uses_classifier_when_configured(self, build_client, usage_repo):
        reply = '[{"text": "smoke", "type": "aroma", "category": "Roasted / Toasted / Smoke", "confidence": 0.9}]'
        client = build_client(ScriptedClassifier(reply, tokens=42))

        resp = extract(client, "smoky nose")

        assert resp.status_code == 200
        assert resp.json()["method"] == "ai"
        assert resp.json()["tokens_used"] == 42
        assert len(usage_repo.entries) == 1

    def test_exactly_one_note_source_is_required(self, client):
        resp = client.post(
            "/api/v1/descriptors/extract",
            json={
                "source_type": "quick_review",
                "source_id": str(uuid4()),
                "note_text": "oak",
                "structured_notes": {"aroma_notes": "cherry"},
            },
        )
        assert resp.status_code == 422

    def test_requires_authentication(self, make_services):
        client = TestClient(create_app(services=make_services()))
        resp = extract(client, "oak")
        assert resp.status_code == 401


class TestTaxonomies:
    def test_not_available_without_classifier(self, client):
        resp = client.post("/api/v1/taxonomies", json={"category_name": "Mezcal"})

        assert resp.status_code == 200
        assert resp.json()["status"] == "not_available"
        assert resp.json()["taxonomy"] is None

    def test_created_then_cached(self, build_client, taxonomy_repo):
        client = build_client(ScriptedClassifier(TAXONOMY_REPLY))

        first = client.post("/api/v1/taxonomies", json={"category_name": "Mezcal"})
        second = client.post("/api/v1/taxonomies", json={"category_name": "  mezcal "})

        assert first.json()["status"] == "created"
        assert first.json()["cached"] is False
        assert second.json()["status"] == "cached"
        assert second.json()["taxonomy"]["usage_count"] == 2
        assert second.json()["taxonomy"]["data"]["aroma_categories"] == ["Smoke", "Fruit"]
        assert list(taxonomy_repo.rows) == ["mezcal"]

    def test_blank_name_is_rejected(self, client):
        resp = client.post("/api/v1/taxonomies", json={"category_name": "   "})
        assert resp.status_code == 400

    def test_popular(self, client, taxonomy_repo, wine_taxonomy):
        taxonomy_repo.rows["wine"] = wine_taxonomy

        resp = client.get("/api/v1/taxonomies/popular", params={"limit": 5})

        assert resp.status_code == 200
        assert [t["normalized_name"] for t in resp.json()] == ["wine"]

    def test_storage_failure_is_503(self, client, taxonomy_repo, monkeypatch):
        async def broken(**kwargs):
            raise PersistenceError("category_taxonomies: connection refused")

        monkeypatch.setattr(taxonomy_repo, "list_popular", broken)

        resp = client.get("/api/v1/taxonomies/popular")

        assert resp.status_code == 503


class TestWheels:
    def test_personal_wheel_goes_stale_and_refreshes(self, client):
        extract(client, "cherry and oak")
        first = client.post("/api/v1/wheels/generate", json={})
        assert first.status_code == 200
        assert first.json()["cached"] is False
        assert first.json()["tree"]["value"] == 2
        assert first.json()["scope_id"] == str(USER.id)

        extract(client, "lemon")
        stale = client.post("/api/v1/wheels/generate", json={})
        assert stale.json()["cached"] is True
        assert stale.json()["stale"] is True
        assert stale.json()["tree"]["value"] == 2

        # The stale response scheduled a rebuild that has run by now
        refreshed = client.post("/api/v1/wheels/generate", json={})
        assert refreshed.json()["stale"] is False
        assert refreshed.json()["tree"]["value"] == 3

    def test_team_scope_requires_membership(self, client, descriptor_repo):
        team = uuid4()
        body = {"scope_type": "team", "team_id": str(team)}

        assert client.post("/api/v1/wheels/generate", json=body).status_code == 403

        descriptor_repo.teams[team] = {USER.id}
        resp = client.post("/api/v1/wheels/generate", json=body)
        assert resp.status_code == 200
        assert resp.json()["scope_type"] == "team"

    def test_invalid_scope_is_400(self, client):
        resp = client.post("/api/v1/wheels/generate", json={"scope_type": "comparative"})
        assert resp.status_code == 400

    def test_window_accepts_naive_and_aware_bounds(self, client):
        body = {"scope_type": "universal", "window_start": "2026-01-01T00:00:00", "window_end": "2026-02-01T00:00:00Z"}
        assert client.post("/api/v1/wheels/generate", json=body).status_code == 200

        inverted = {**body, "window_start": "2026-03-01T00:00:00"}
        assert client.post("/api/v1/wheels/generate", json=inverted).status_code == 400

    def test_force_regenerate(self, client, wheel_repo):
        client.post("/api/v1/wheels/generate", json={"wheel_type": "aroma"})
        resp = client.post("/api/v1/wheels/generate", json={"wheel_type": "aroma", "force_regenerate": True})

        assert resp.json()["cached"] is False
        assert wheel_repo.puts == 2


class TestAdmin:
    def test_non_admin_is_forbidden(self, client):
        assert client.get("/api/v1/admin/usage-stats").status_code == 403

    def test_admin_sees_usage(self, client, current_user):
        current_user["user"] = ADMIN

        resp = client.get("/api/v1/admin/usage-stats", params={"days": 7})

        assert resp.status_code == 200
        assert resp.json()["total_requests"] == 0
        assert resp.json()["estimated_cost_display"] == "$0.0000"

    def test_window_needs_both_bounds(self, client, current_user):
        current_user["user"] = ADMIN

        resp = client.get("/api/v1/admin/usage-stats", params={"start": "2026-01-01T00:00:00Z"})

        assert resp.status_code == 400


    def test_window_mixes_naive_and_aware_bounds(self, client, current_user):
        current_user["user"] = ADMIN

        params = {"start": "2026-01-01T00:00:00", "end": "2026-02-01T00:00:00Z"}
        resp = client.get("/api/v1/admin/usage-stats", params=params)

        assert resp.status_code == 200
        assert resp.json()["total_requests"] == 0


class TestHealth:
    def test_health(self, client):
        resp = client.get("/api/v1/health/")
        assert resp.status_code == 200
        assert resp.json()["status"] == "healthy"

    def test_ready_reports_fallback_mode(self, client):
        resp = client.get("/api/v1/health/ready")

        assert resp.status_code == 200
        assert resp.json()["status"] == "ready"
        assert resp.json()["classifier"] == "keyword_fallback"

    def test_ready_degraded_when_storage_fails(self, client, taxonomy_repo, monkeypatch):
        async def broken():
            raise PersistenceError("predefined_flavor_categories: timeout")

        monkeypatch.setattr(taxonomy_repo, "list_predefined_categories", broken)

        resp = client.get("/api/v1/health/ready")

        assert resp.status_code == 503
        assert resp.json()["status"] == "degraded"
