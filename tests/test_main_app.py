"""
Tests for nobre_hub/main.py - FastAPI app creation, middleware, lifespan, and CORS.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from fastapi import FastAPI
from fastapi.testclient import TestClient

from nobre_hub import database
from nobre_hub.database import get_db
from nobre_hub.main import CorrelationIdMiddleware, create_app, lifespan


def _make_mock_settings(**overrides):
    """Build a mock Settings object."""
    defaults = {
        "app_env": "test",
        "app_base_url": "http://localhost:3001",
        "log_level": "WARNING",
        "supabase_jwt_secret": "test_jwt_secret",
        "sentry_dsn": "",
        "allowed_origins": "https://nobre.example.com, https://lp.nobre.example.com",
    }
    defaults.update(overrides)
    settings = MagicMock()
    for k, v in defaults.items():
        setattr(settings, k, v)
    return settings


def _app(**overrides):
    with (
        patch("nobre_hub.main.get_settings", return_value=_make_mock_settings(**overrides)),
        patch("nobre_hub.main.configure_structured_logging"),
    ):
        return create_app()


class TestCreateApp:
    def test_returns_fastapi_instance(self):
        app = _app()
        assert isinstance(app, FastAPI)
        assert app.title == "Nobre Hub"

    def test_configures_structured_logging(self):
        with (
            patch("nobre_hub.main.get_settings", return_value=_make_mock_settings(log_level="DEBUG")),
            patch("nobre_hub.main.configure_structured_logging") as mock_log,
        ):
            create_app()
        mock_log.assert_called_once_with("DEBUG")

    def test_routes_registered(self):
        paths = {route.path for route in _app().routes}
        assert {
            "/health",
            "/health/ready",
            "/round-robin/assign/{lead_id}",
            "/round-robin/auto-assign",
            "/round-robin/stats/{pipeline}",
            "/public/lead",
            "/permissions",
            "/permissions/me",
            "/permissions/{role}",
            "/notifications/preferences",
            "/leads",
        } <= paths


class TestCorrelationIdMiddleware:
    def test_generates_correlation_id_when_missing(self):
        client = TestClient(_app(), raise_server_exceptions=False)
        response = client.get("/health")
        assert len(response.headers["x-correlation-id"]) == 32

    def test_uses_existing_correlation_id(self):
        client = TestClient(_app(), raise_server_exceptions=False)
        cid = "abc123def456789012345678abcdef00"
        response = client.get("/health", headers={"X-Correlation-ID": cid})
        assert response.headers["x-correlation-id"] == cid


class TestAuthWiring:
    def test_protected_route_without_token(self):
        app = _app()

        async def _no_db():
            yield MagicMock()

        app.dependency_overrides[get_db] = _no_db
        client = TestClient(app, raise_server_exceptions=False)
        response = client.get("/permissions/me")
        assert response.status_code in (401, 403)


class TestEngineSetup:
    def _build(self, url):
        settings = MagicMock(
            database_url=url,
            database_pool_size=10,
            database_max_overflow=20,
            app_env="test",
        )
        with (
            patch.object(database, "_engine", None),
            patch("nobre_hub.config.get_settings", return_value=settings),
            patch.object(database, "create_async_engine") as mock_create,
        ):
            database._get_engine()
        return mock_create.call_args

    def test_sqlite_engine_has_no_pool_sizing(self):
        args, kwargs = self._build("sqlite+aiosqlite:///:memory:")
        assert args == ("sqlite+aiosqlite:///:memory:",)
        assert "pool_size" not in kwargs
        assert "max_overflow" not in kwargs

    def test_postgres_engine_gets_pool_sizing(self):
        _, kwargs = self._build("postgresql+asyncpg://u:p@localhost/nobre")
        assert kwargs["pool_size"] == 10
        assert kwargs["max_overflow"] == 20


class TestCorsMiddleware:
    def test_allows_configured_origin(self):
        client = TestClient(_app(), raise_server_exceptions=False)
        response = client.options(
            "/health",
            headers={
                "Origin": "https://lp.nobre.example.com",
                "Access-Control-Request-Method": "GET",
            },
        )
        assert response.headers.get("access-control-allow-origin") == "https://lp.nobre.example.com"

    def test_rejects_unknown_origin(self):
        client = TestClient(_app(), raise_server_exceptions=False)
        response = client.options(
            "/health",
            headers={
                "Origin": "https://evil.example.com",
                "Access-Control-Request-Method": "GET",
            },
        )
        assert "access-control-allow-origin" not in response.headers


class TestLifespan:
    async def test_seeds_permissions_on_startup(self):
        app = MagicMock()
        with (
            patch("nobre_hub.main.get_settings", return_value=_make_mock_settings()),
            patch("nobre_hub.main._seed_role_permissions", new_callable=AsyncMock) as mock_seed,
        ):
            async with lifespan(app):
                mock_seed.assert_awaited_once()

    async def test_initializes_sentry_when_configured(self):
        app = MagicMock()
        with (
            patch("nobre_hub.main.get_settings", return_value=_make_mock_settings(sentry_dsn="https://key@sentry.io/1")),
            patch("nobre_hub.main._seed_role_permissions", new_callable=AsyncMock),
            patch("sentry_sdk.init") as mock_init,
        ):
            async with lifespan(app):
                pass
        mock_init.assert_called_once()
        assert mock_init.call_args.kwargs["dsn"] == "https://key@sentry.io/1"

    async def test_skips_sentry_when_not_configured(self):
        app = MagicMock()
        with (
            patch("nobre_hub.main.get_settings", return_value=_make_mock_settings()),
            patch("nobre_hub.main._seed_role_permissions", new_callable=AsyncMock),
            patch("sentry_sdk.init") as mock_init,
        ):
            async with lifespan(app):
                pass
        mock_init.assert_not_called()

    async def test_seed_failure_does_not_block_startup(self):
        app = MagicMock()
        with (
            patch("nobre_hub.main.get_settings", return_value=_make_mock_settings()),
            patch("nobre_hub.database.async_session_factory", side_effect=RuntimeError("db down")),
        ):
            async with lifespan(app):
                pass
