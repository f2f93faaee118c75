"""
Tests for the HTTP layer.

Each test gets a fresh application (and so fresh tables and timers)
through the create_app factory. TestClient is used as a context manager
so the lifespan runs and the event loop stays up for pending timers.
"""

import asyncio
import io
import struct
import time

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from src.config.settings import Settings
from src.main import create_app


def make_settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


def image_bytes(fmt="PNG", color="red", size=(8, 8)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format=fmt)
    return buffer.getvalue()


def upload(client, data, filename="image.png", content_type="image/png"):
    return client.post("/upload", files={"image": (filename, data, content_type)})


@pytest.fixture
def client():
    app = create_app(make_settings(max_upload_size_mb=1))
    with TestClient(app) as test_client:
        yield test_client


# ---------------------------------------------------------------------------
# Upload Tests
# ---------------------------------------------------------------------------

class TestUpload:
    """Tests for POST /upload."""

    def test_upload_returns_hex_handle(self, client):
        """A successful upload returns a 16-digit hex handle."""
        response = upload(client, image_bytes())

        assert response.status_code == 200
        media_id = response.json()
        assert isinstance(media_id, str)
        assert len(media_id) == 16
        int(media_id, 16)

    def test_uploaded_image_is_retrievable_as_png(self, client):
        """Uploads come back as PNG whatever format they arrived in."""
        media_id = upload(client, image_bytes("JPEG"), "photo.jpg", "image/jpeg").json()

        response = client.get(f"/get/{media_id}")

        assert response.status_code == 200
        assert response.headers["content-type"] == "image/png"
        assert Image.open(io.BytesIO(response.content)).size == (8, 8)

    def test_exists_is_true_after_upload(self, client):
        """A fresh handle reports as existing."""
        media_id = upload(client, image_bytes()).json()
        assert client.get(f"/exists/{media_id}").json() is True

    def test_identical_uploads_share_storage(self, client):
        """Duplicate uploads get separate handles over one stored object."""
        data = image_bytes()

        h1 = upload(client, data).json()
        h2 = upload(client, data).json()

        assert h1 != h2
        assert client.get(f"/get/{h1}").content == client.get(f"/get/{h2}").content

        ready = client.get("/health/ready").json()
        assert ready["live_bindings"] == 2
        assert ready["stored_objects"] == 1
        assert ready["pending_expirations"] == 2

    def test_undecodable_upload_is_rejected(self, client):
        """Non-image bytes are a client error."""
        response = upload(client, b"not an image", "note.txt", "text/plain")

        assert response.status_code == 400
        assert "decode" in response.json()["detail"]

    def test_oversize_upload_is_rejected(self, client):
        """Bodies above the configured limit get 413."""
        response = upload(client, b"\0" * (1024 * 1024 + 1))
        assert response.status_code == 413

    def test_missing_image_field_is_rejected(self, client):
        """The multipart field must be named image."""
        response = client.post("/upload", files={"other": ("a.png", image_bytes(), "image/png")})
        assert response.status_code == 422

    def test_unsupported_pixel_format_is_rejected(self, client):
        """A recognised format Pillow cannot decode is a client error, not a crash."""
        header = struct.pack("<7I", 124, 0x1007, 4, 4, 0, 0, 0) + bytes(44)
        header += struct.pack("<2I", 32, 0) + bytes(24) + bytes(20)
        response = upload(client, b"DDS " + header + bytes(64), "image.dds", "image/vnd-ms.dds")

        assert response.status_code == 400
        assert client.get("/health/ready").json()["live_bindings"] == 0

    def test_upload_during_shutdown_binds_nothing(self):
        """Once expirations are shut down an upload is refused before a handle is bound."""
        app = create_app(make_settings())

        with TestClient(app) as client:
            asyncio.run(app.state.expiration_scheduler.shutdown())

            response = upload(client, image_bytes())

            assert response.status_code == 503
            assert len(app.state.media_manager) == 0
            assert len(app.state.media_manager.storage) == 0


# ---------------------------------------------------------------------------
# Retrieval Tests
# ---------------------------------------------------------------------------

class TestRetrieval:
    """Tests for GET /get and GET /exists."""

    def test_unknown_handle_is_not_found(self, client):
        """A well-formed but unissued handle is not found."""
        response = client.get("/get/0123456789abcdef")

        assert response.status_code == 404
        assert client.get("/exists/0123456789abcdef").json() is False

    @pytest.mark.parametrize("token", ["xyz", "0123", "0123456789abcdefff", "0x23456789abcdef"])
    def test_malformed_handle_looks_unknown(self, client, token):
        """Malformed tokens are indistinguishable from unknown handles."""
        assert client.get(f"/get/{token}").status_code == 404

        response = client.get(f"/exists/{token}")
        assert response.status_code == 200
        assert response.json() is False

    def test_uppercase_handle_resolves(self, client):
        """Handles are matched case-insensitively."""
        media_id = upload(client, image_bytes()).json()
        assert client.get(f"/get/{media_id.upper()}").status_code == 200


# ---------------------------------------------------------------------------
# Expiration Tests
# ---------------------------------------------------------------------------

class TestExpiration:
    """Uploads disappear once the TTL elapses."""

    def test_upload_expires_after_ttl(self):
        """A handle stops resolving once its TTL has passed."""
        app = create_app(make_settings(media_ttl_seconds=0.2))

        with TestClient(app) as client:
            media_id = upload(client, image_bytes()).json()
            assert client.get(f"/exists/{media_id}").json() is True

            deadline = time.monotonic() + 5
            while client.get(f"/exists/{media_id}").json() and time.monotonic() < deadline:
                time.sleep(0.05)

            assert client.get(f"/exists/{media_id}").json() is False
            assert client.get(f"/get/{media_id}").status_code == 404

    def test_shutdown_cancels_pending_expirations(self):
        """Leaving the lifespan cancels outstanding timers."""
        app = create_app(make_settings())

        with TestClient(app) as client:
            upload(client, image_bytes())
            assert client.get("/health/ready").json()["pending_expirations"] == 1

        assert app.state.expiration_scheduler.closed
        assert app.state.expiration_scheduler.pending == 0


# ---------------------------------------------------------------------------
# Health Tests
# ---------------------------------------------------------------------------

class TestHealth:
    """Tests for the health endpoints."""

    def test_liveness(self, client):
        """Liveness answers without touching services."""
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_readiness_on_fresh_app(self, client):
        """A fresh app is ready and empty."""
        response = client.get("/health/ready")
        body = response.json()

        assert response.status_code == 200
        assert body["status"] == "ready"
        assert body["live_bindings"] == 0
        assert body["stored_objects"] == 0
        assert {check["name"] for check in body["checks"]} == {
            "configuration",
            "expiration_scheduler",
        }

    def test_invalid_configuration_fails_startup(self):
        """Startup aborts on an invalid TTL."""
        app = create_app(make_settings(media_ttl_seconds=0))

        with pytest.raises(RuntimeError, match="MEDIA_TTL_SECONDS"):
            with TestClient(app):
                pass


class TestSettings:
    """Tests for settings helpers."""

    def test_debug_binds_all_interfaces_and_allows_any_origin(self):
        """Debug mode opens the bind address and CORS."""
        settings = make_settings(debug=True, cors_origins="https://a.example")

        assert settings.bind_host == "0.0.0.0"
        assert settings.cors_origins_list == ["*"]

    def test_cors_origins_are_split(self):
        """Comma-separated origins become a list."""
        settings = make_settings(debug=False, cors_origins="https://a.example, https://b.example")
        assert settings.cors_origins_list == ["https://a.example", "https://b.example"]

    def test_defaults_match_service_contract(self):
        """Defaults give a one-hour TTL, 20MB uploads and port 5040."""
        fields = Settings.model_fields

        assert fields["media_ttl_seconds"].default == 3600
        assert fields["max_upload_size_mb"].default == 20
        assert fields["port"].default == 5040
        assert fields["host"].default == "127.0.0.1"

    def test_validate_reports_each_problem(self):
        """Each invalid field is reported separately."""
        settings = make_settings(media_ttl_seconds=0, max_upload_size_mb=0, storage_shards=0)
        assert len(settings.validate_required_fields()) == 3
