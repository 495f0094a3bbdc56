"""Tests for application wiring in ``create_app``."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from backend.app.config import ApiConfig, RetentionConfig, Settings, StorageConfig
from backend.app.main import create_app

pytestmark = [pytest.mark.api]


@pytest.fixture()
def app_settings(tmp_path):
    return Settings(
        storage=StorageConfig(root=str(tmp_path)),
        retention=RetentionConfig(sweeper_enabled=False),
        api=ApiConfig(max_upload_bytes=128),
    )


def test_oversized_request_rejected_before_routing(app_settings):
    client = TestClient(create_app(app_settings))

    response = client.post(
        "/api/entries", files={"image": ("big.jpg", b"x" * 512, "image/jpeg")}
    )

    assert response.status_code == 413
    body = response.json()
    assert body["error_code"] == "FN-PAYLOAD-TOO-LARGE"
    assert body["details"] == {"max_bytes": 128}


def test_media_mount_serves_stored_images(app_settings, tmp_path):
    images = tmp_path / "images"
    images.mkdir()
    (images / "leaf.jpg").write_bytes(b"leaf-bytes")
    client = TestClient(create_app(app_settings))

    found = client.get("/media/images/leaf.jpg")
    missing = client.get("/media/images/absent.jpg")

    assert found.status_code == 200
    assert found.content == b"leaf-bytes"
    assert missing.status_code == 404


def test_cors_allows_configured_origin(app_settings):
    client = TestClient(create_app(app_settings))

    response = client.get("/api/health", headers={"Origin": "http://example.test"})

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"
