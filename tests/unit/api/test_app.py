"""Tests for the main FastAPI application and health endpoints."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from search_rebuilder.api.app import app
from search_rebuilder.core.config import RebuildConfig
from search_rebuilder.core.errors import ConfigurationError


@pytest.fixture
def client():
    return TestClient(app)


class TestAppInitialization:
    """Test application initialization."""

    def test_app_title(self):
        from search_rebuilder.core.config import settings

        assert app.title == settings.app_name

    def test_app_has_routes(self):
        routes = [route.path for route in app.routes]

        assert "/api/v1/rebuild-index" in routes
        assert "/api/v1/rebuild-index/{count}" in routes
        assert "/api/v1/health" in routes

    def test_root_health_check(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert "is running" in response.text

    def test_process_time_header(self, client):
        response = client.get("/")

        assert "x-process-time" in response.headers

    def test_lifespan_tolerates_bad_configuration(self):
        with patch.object(
            RebuildConfig, "from_settings", side_effect=ConfigurationError("bad")
        ):
            with TestClient(app) as client:
                assert client.get("/").status_code == 200


class TestHealthCheck:
    """Test GET /api/v1/health."""

    def test_healthy(self, client):
        storage = MagicMock()
        storage.ping = AsyncMock(return_value=True)
        service = MagicMock()
        service.ping = AsyncMock(return_value=True)

        with (
            patch.object(RebuildConfig, "from_settings", return_value=RebuildConfig()),
            patch("search_rebuilder.api.health.create_storage", return_value=storage),
            patch("search_rebuilder.api.health.create_search_service", return_value=service),
        ):
            response = client.get("/api/v1/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["components"]["storage"] == "available"

    def test_search_not_configured(self, client):
        storage = MagicMock()
        storage.ping = AsyncMock(return_value=True)

        with (
            patch.object(RebuildConfig, "from_settings", return_value=RebuildConfig()),
            patch("search_rebuilder.api.health.create_storage", return_value=storage),
        ):
            response = client.get("/api/v1/health")

        assert response.status_code == 503
        assert response.json()["components"]["search_service"] == "not_configured"

    def test_storage_unreachable(self, client):
        storage = MagicMock()
        storage.ping = AsyncMock(side_effect=OSError("down"))
        service = MagicMock()
        service.ping = AsyncMock(return_value=True)

        with (
            patch.object(RebuildConfig, "from_settings", return_value=RebuildConfig()),
            patch("search_rebuilder.api.health.create_storage", return_value=storage),
            patch("search_rebuilder.api.health.create_search_service", return_value=service),
        ):
            response = client.get("/api/v1/health")

        assert response.status_code == 503
        assert response.json()["components"]["storage"] == "unavailable"

    def test_invalid_configuration(self, client):
        with patch.object(
            RebuildConfig, "from_settings", side_effect=ConfigurationError("bad settings")
        ):
            response = client.get("/api/v1/health")

        assert response.status_code == 503
        assert response.json()["components"]["configuration"] == "invalid"
