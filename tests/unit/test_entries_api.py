"""FastAPI tests for entry, sharing and settings endpoints."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from backend.app.api.dependencies import (
    get_app_settings,
    get_classifier,
    get_entry_gateway,
    get_image_store,
    get_settings_repository,
)
from backend.app.api.errors import register_exception_handlers
from backend.app.api.routers import entries, health, settings, sharing
from backend.app.config import ApiConfig, Settings, StorageConfig
from backend.app.domain.collection_settings import InMemoryCollectionSettingsRepository
from backend.app.domain.entrystore import Classification, InMemoryEntryStoreGateway
from backend.app.domain.errors import UpstreamError
from backend.app.domain.imagestore import LocalImageStore
from backend.app.infra.events import InMemoryEventEmitter
from backend.app.infra.llm_gateway import ClassificationResult

pytestmark = [pytest.mark.api]


class _StubClassifier:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error

    def classify(self, *, data: bytes, mime: str) -> ClassificationResult:
        if self.error is not None:
            raise self.error
        return ClassificationResult(
            label="Meadow",
            description="Wildflowers in a sunny meadow.",
            model_used="claude-test",
            tags=["meadow", "flowers", "sunny"],
            confidence=0.8,
            response={"id": "msg_2"},
        )


@pytest.fixture()
def context(tmp_path):
    gateway = InMemoryEntryStoreGateway()
    store = LocalImageStore(tmp_path)
    repository = InMemoryCollectionSettingsRepository()
    app_settings = Settings(
        storage=StorageConfig(root=str(tmp_path)),
        api=ApiConfig(max_upload_bytes=64 * 1024),
    )
    classifier = _StubClassifier()

    app = FastAPI()
    register_exception_handlers(app)
    for router in (health.router, settings.router, entries.router, sharing.router):
        app.include_router(router)
    app.dependency_overrides[get_entry_gateway] = lambda: gateway
    app.dependency_overrides[get_image_store] = lambda: store
    app.dependency_overrides[get_settings_repository] = lambda: repository
    app.dependency_overrides[get_app_settings] = lambda: app_settings
    app.dependency_overrides[get_classifier] = lambda: classifier
    return {
        "client": TestClient(app),
        "app": app,
        "gateway": gateway,
        "store": store,
        "repository": repository,
        "root": tmp_path,
    }


def _seed(gateway: InMemoryEntryStoreGateway, *, label: str = "Forest", now=None):
    return gateway.create_entry(
        image_path=f"images/{label.lower()}.jpg",
        image_mime="image/jpeg",
        classification=Classification(
            label=label,
            description=f"A {label.lower()}.",
            tags=[label.lower(), "green", "quiet"],
            confidence=0.9,
        ),
        now=now,
    )


def test_health_reports_model(context):
    response = context["client"].get("/api/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["model"] == "claude-opus-4-5"


def test_upload_creates_entry(context):
    response = context["client"].post(
        "/api/entries",
        files={"image": ("meadow.png", b"\x89PNG-bytes", "image/png")},
    )

    assert response.status_code == 200
    entry = response.json()["entry"]
    assert entry["label"] == "Meadow"
    assert entry["tags"] == ["meadow", "flowers", "sunny"]
    assert entry["shared"] is False
    assert entry["share_url"] is None
    assert entry["image_url"].startswith("/media/images/")
    assert entry["image_url"].endswith(".png")
    stored = context["root"] / entry["image_url"].removeprefix("/media/")
    assert stored.read_bytes() == b"\x89PNG-bytes"


def test_upload_without_image_is_bad_request(context):
    response = context["client"].post("/api/entries", data={"other": "value"})

    assert response.status_code == 400
    body = response.json()
    assert body["error_code"] == "FN-BAD-REQUEST"
    assert body["error"] == "Missing image field"


def test_upload_over_limit_is_rejected(context):
    payload = b"x" * (64 * 1024 + 1)

    response = context["client"].post(
        "/api/entries", files={"image": ("big.jpg", payload, "image/jpeg")}
    )

    assert response.status_code == 413
    assert response.json()["error_code"] == "FN-PAYLOAD-TOO-LARGE"
    assert list(context["store"].iter_references()) == []


def test_upstream_failure_returns_502_and_leaves_nothing(context):
    context["app"].dependency_overrides[get_classifier] = lambda: _StubClassifier(
        error=UpstreamError("classifier response contains no JSON object")
    )

    response = context["client"].post(
        "/api/entries", files={"image": ("a.jpg", b"jpeg", "image/jpeg")}
    )

    assert response.status_code == 502
    assert response.json()["error_code"] == "FN-UPSTREAM"
    assert context["gateway"].list_entries(include_deleted=True) == []
    assert list(context["store"].iter_references()) == []


def test_unexpected_failure_renders_json_error(context):
    context["app"].dependency_overrides[get_classifier] = lambda: _StubClassifier(
        error=RuntimeError("socket closed")
    )
    client = TestClient(context["app"], raise_server_exceptions=False)

    response = client.post(
        "/api/entries", files={"image": ("a.jpg", b"jpeg", "image/jpeg")}
    )

    assert response.status_code == 500
    assert response.json() == {
        "error": "Internal server error",
        "error_code": "FN-INTERNAL",
        "details": {},
    }
    assert list(context["store"].iter_references()) == []


def test_list_and_detail(context):
    older = _seed(context["gateway"], label="Forest", now=datetime(2026, 1, 1, tzinfo=timezone.utc))
    newer = _seed(context["gateway"], label="River", now=datetime(2026, 1, 2, tzinfo=timezone.utc))

    listed = context["client"].get("/api/entries").json()
    assert [item["id"] for item in listed] == [newer.entry_id, older.entry_id]
    assert set(listed[0]) == {
        "id",
        "created_at",
        "image_url",
        "label",
        "description",
        "confidence",
        "tags",
        "shared",
    }

    detail = context["client"].get(f"/api/entries/{older.entry_id}")
    assert detail.status_code == 200
    assert detail.json()["image_url"] == "/media/images/forest.jpg"

    missing = context["client"].get("/api/entries/unknown")
    assert missing.status_code == 404
    assert missing.json()["error_code"] == "FN-NOT-FOUND"


def test_delete_and_restore_flow(context):
    entry = _seed(context["gateway"])
    client = context["client"]

    deleted = client.post(f"/api/entries/{entry.entry_id}/delete")
    assert deleted.json() == {"status": "deleted"}
    assert client.get("/api/entries").json() == []
    assert client.get(f"/api/entries/{entry.entry_id}").status_code == 200
    assert client.post(f"/api/entries/{entry.entry_id}/delete").status_code == 404

    restored = client.post(f"/api/entries/{entry.entry_id}/restore")
    assert restored.json() == {"status": "restored"}
    assert [item["id"] for item in client.get("/api/entries").json()] == [entry.entry_id]

    not_deleted = client.post(f"/api/entries/{entry.entry_id}/restore")
    assert not_deleted.status_code == 400
    assert not_deleted.json()["error_code"] == "FN-NOT-DELETED"
    assert client.post("/api/entries/unknown/restore").status_code == 404


def test_restore_after_window_is_rejected(context):
    entry = _seed(context["gateway"])
    context["gateway"].soft_delete(
        entry.entry_id, now=datetime.now(timezone.utc) - timedelta(hours=2)
    )

    response = context["client"].post(f"/api/entries/{entry.entry_id}/restore")

    assert response.status_code == 400
    assert response.json()["error_code"] == "FN-RESTORE-EXPIRED"


def test_share_round_trip(context):
    entry = _seed(context["gateway"])
    client = context["client"]

    shared = client.post(f"/api/entries/{entry.entry_id}/share", json={"enable": True})
    assert shared.status_code == 200
    detail = shared.json()["entry"]
    assert detail["shared"] is True
    token = detail["share_url"].removeprefix("/share/")
    assert token

    public = client.get(f"/api/share/{token}")
    assert public.status_code == 200
    assert public.json()["id"] == entry.entry_id

    again = client.post(f"/api/entries/{entry.entry_id}/share", json={"enable": True})
    assert again.json()["entry"]["share_url"] == detail["share_url"]

    unshared = client.post(f"/api/entries/{entry.entry_id}/share", json={"enable": False})
    assert unshared.json()["entry"]["shared"] is False
    assert unshared.json()["entry"]["share_url"] is None
    assert client.get(f"/api/share/{token}").status_code == 404


def test_share_events_only_on_state_change(context, monkeypatch):
    recorded = InMemoryEventEmitter()
    monkeypatch.setattr(entries, "events", recorded)
    entry = _seed(context["gateway"])
    client = context["client"]

    for enable in (True, True, False, False):
        response = client.post(
            f"/api/entries/{entry.entry_id}/share", json={"enable": enable}
        )
        assert response.status_code == 200

    assert recorded.topics == ["journal.entry.shared", "journal.entry.unshared"]


def test_share_unknown_entry_is_not_found(context):
    response = context["client"].post("/api/entries/unknown/share", json={"enable": True})

    assert response.status_code == 404


def test_public_listing_follows_settings(context):
    entry = _seed(context["gateway"])
    client = context["client"]

    assert client.get("/api/settings").json() == {"is_public": False}
    assert client.get("/api/public/entries").status_code == 404

    updated = client.put("/api/settings", json={"is_public": True})
    assert updated.json() == {"is_public": True}
    public = client.get("/api/public/entries")
    assert public.status_code == 200
    assert [item["id"] for item in public.json()] == [entry.entry_id]

    client.put("/api/settings", json={"is_public": False})
    assert client.get("/api/public/entries").status_code == 404


def test_settings_rejects_invalid_body(context):
    response = context["client"].put("/api/settings", json={"is_public": "maybe"})

    assert response.status_code == 422
