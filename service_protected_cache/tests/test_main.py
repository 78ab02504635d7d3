"""
End-to-end tests for the protected static cache service.
"""

import stat
from unittest.mock import MagicMock

import httpx
import pytest
from fastapi.responses import HTMLResponse
from fastapi.testclient import TestClient

from service_protected_cache.app.admin.catalog import StaticResourceCatalog
from service_protected_cache.app.admin.preloader import Preloader
from service_protected_cache.app.main import ProtectedCacheService, create_app
from service_protected_cache.tests.helpers import LOCKED_PAGE, ResourceFactory, StubGateEvaluator, unlocked_page
from shared.config import get_config


GATED = {"X-PPSC-Gated": "1"}
UNLOCKED = {"X-PPSC-Gated": "1", "X-PPSC-Unlocked": "1"}
OPERATOR = {"X-PPSC-Gated": "1", "X-PPSC-Unlocked": "1", "X-PPSC-Privileged": "1"}

CACHED = b"<!-- Cached by PPSC -->\n"
NOT_CACHED = b"<!-- Not cached by PPSC -->\n"


class TestProtectedCacheService:
    """Test cases for the service wired into FastAPI."""

    @pytest.fixture
    def cache_dir(self, tmp_path):
        return tmp_path / "pp-static-cache"

    @pytest.fixture
    def config(self, cache_dir):
        return get_config(
            cache_dir=cache_dir,
            nonce_secret="test-secret-with-enough-bytes-for-hs256",
            public_base_url="https://members.example.com",
        )

    @pytest.fixture
    def fetched(self):
        return []

    @pytest.fixture
    def preloader(self, fetched):
        def handler(request: httpx.Request) -> httpx.Response:
            fetched.append(str(request.url))
            return httpx.Response(200, text="ok")

        return Preloader("https://members.example.com", transport=httpx.MockTransport(handler))

    @pytest.fixture
    def service(self, config, preloader):
        service = ProtectedCacheService(
            catalog=StaticResourceCatalog(ResourceFactory.create_gated_resources()),
            config=config,
            preloader=preloader,
        )
        service.renders = []

        @service.app.api_route("/resources/{resource_id}", methods=["GET", "HEAD"])
        async def show_resource(resource_id: str):
            service.renders.append(resource_id)
            if resource_id == "60":
                response = HTMLResponse(unlocked_page(resource_id).decode("utf-8"))
                response.set_cookie("theme", "dark")
                response.set_cookie("seen", "60")
                return response
            if resource_id == "404":
                return HTMLResponse("<p>gone</p>", status_code=404)
            if resource_id == "50":
                return HTMLResponse(LOCKED_PAGE.decode("utf-8"))
            return HTMLResponse(unlocked_page(resource_id).decode("utf-8"))

        return service

    @pytest.fixture
    def client(self, service):
        with TestClient(service.app) as client:
            yield client

    def _nonce(self, client) -> str:
        return client.get("/admin/cache", headers=OPERATOR).json()["nonce"]

    def test_startup_prepares_cache_directory(self, client, cache_dir):
        """Activation creates the directory, access-denial file and log."""
        assert stat.S_IMODE(cache_dir.stat().st_mode) == 0o700
        assert (cache_dir / ".htaccess").exists()
        assert stat.S_IMODE((cache_dir / "ppsc-debug.log").stat().st_mode) == 0o600

    def test_locked_request_gets_no_cache_headers(self, client, service, cache_dir):
        """Scenario: locked view renders normally with no-cache directives."""
        response = client.get("/resources/42", headers=GATED)

        assert response.status_code == 200
        assert "no-store" in response.headers["cache-control"]
        assert response.headers["pragma"] == "no-cache"
        assert response.headers["expires"] == "Thu, 01 Jan 1970 00:00:00 GMT"
        assert response.headers["surrogate-control"] == "no-store"
        assert not response.content.startswith(CACHED)
        assert service.renders == ["42"]
        assert not (cache_dir / "cache-42.html").exists()

    def test_unlocked_request_is_cached_then_served(self, client, service, cache_dir):
        """Scenario: first unlocked view stores, second is served from disk."""
        first = client.get("/resources/42", headers=UNLOCKED)
        second = client.get("/resources/42", headers=UNLOCKED)

        assert first.status_code == 200
        assert first.content == CACHED + unlocked_page("42")
        assert second.content == first.content
        assert second.headers["cache-control"] == "private"
        assert second.headers["content-type"].startswith("text/html")
        assert service.renders == ["42"]
        assert (cache_dir / "cache-42.html").read_bytes() == unlocked_page("42")

    def test_locked_request_after_caching_never_sees_cached_copy(self, client, service):
        """A locked visitor is never served the stored page."""
        client.get("/resources/42", headers=UNLOCKED)

        response = client.get("/resources/42", headers=GATED)

        assert not response.content.startswith(CACHED)
        assert service.renders == ["42", "42"]

    def test_privileged_request_bypasses_cache(self, client, service, cache_dir):
        """Operators always get a fresh render and create nothing."""
        response = client.get("/resources/42", headers=OPERATOR)

        assert response.content == unlocked_page("42")
        assert not (cache_dir / "cache-42.html").exists()

    def test_ungated_resource_untouched(self, client, service, cache_dir):
        """Resources without a secret stream through without headers or markers."""
        response = client.get("/resources/42")

        assert response.content == unlocked_page("42")
        assert "cache-control" not in response.headers
        assert not (cache_dir / "cache-42.html").exists()

    def test_non_get_requests_are_not_resource_views(self, client, service, cache_dir):
        """Only GET and HEAD requests on the resource path are considered."""
        response = client.post("/resources/42", headers=UNLOCKED)

        assert response.status_code == 405
        assert not (cache_dir / "cache-42.html").exists()

    def test_still_locked_render_not_cached(self, client, cache_dir):
        """A render that still shows the password form is served but not stored."""
        response = client.get("/resources/50", headers=UNLOCKED)

        assert response.content == NOT_CACHED + LOCKED_PAGE
        assert "no-store" in response.headers["cache-control"]
        assert not (cache_dir / "cache-50.html").exists()

    def test_head_on_locked_resource_gets_no_cache_headers(self, client, cache_dir):
        """HEAD responses for a locked resource carry the no-cache directives too."""
        response = client.head("/resources/42", headers=GATED)

        assert response.status_code == 200
        assert "no-store" in response.headers["cache-control"]
        assert response.headers["surrogate-control"] == "no-store"
        assert not (cache_dir / "cache-42.html").exists()

    def test_head_on_unlocked_resource_creates_no_entry(self, client, cache_dir):
        """A bodiless HEAD response is never written as a cache entry."""
        response = client.head("/resources/42", headers=UNLOCKED)

        assert response.status_code == 200
        assert response.headers["cache-control"] == "private"
        assert not (cache_dir / "cache-42.html").exists()

    def test_capture_keeps_every_set_cookie(self, client, cache_dir):
        """Repeated Set-Cookie headers from the renderer all reach the client."""
        response = client.get("/resources/60", headers=UNLOCKED)

        cookies = response.headers.get_list("set-cookie")
        assert len(cookies) == 2
        assert any(cookie.startswith("theme=dark") for cookie in cookies)
        assert any(cookie.startswith("seen=60") for cookie in cookies)
        assert response.headers["cache-control"] == "private"
        assert (cache_dir / "cache-60.html").exists()

    def test_error_status_not_cached(self, client, service, cache_dir):
        """Error pages keep their status and are never stored."""
        first = client.get("/resources/404", headers=UNLOCKED)
        client.get("/resources/404", headers=UNLOCKED)

        assert first.status_code == 404
        assert first.content == b"<p>gone</p>"
        assert service.renders == ["404", "404"]
        assert not (cache_dir / "cache-404.html").exists()

    def test_admin_page_requires_operator(self, client):
        response = client.get("/admin/cache", headers=UNLOCKED)

        assert response.status_code == 403
        assert response.json()["code"] == "AUTHORIZATION_ERROR"

    def test_admin_page_shows_coverage_and_log(self, client, service):
        """Coverage reflects the store and the log reads newest first."""
        client.get("/resources/42", headers=UNLOCKED)

        body = client.get("/admin/cache", headers=OPERATOR).json()

        assert body["log_file"].endswith("ppsc-debug.log")
        coverage = {row["resource_id"]: row for row in body["coverage"]}
        assert coverage["42"]["cached"] is True
        assert coverage["43"]["cached"] is False
        assert "Cache file created =>" in body["logs"][0]
        assert body["nonce"]

    def test_clear_all_action(self, client, cache_dir):
        """Scenario: clear-all empties the cache."""
        client.get("/resources/42", headers=UNLOCKED)
        client.get("/resources/43", headers=UNLOCKED)

        response = client.post(
            "/admin/cache/actions",
            headers=OPERATOR,
            json={"action": "clear_all", "nonce": self._nonce(client)},
        )

        assert response.status_code == 200
        assert response.json()["result"]["count"] == 2
        assert not any(row["cached"] for row in response.json()["coverage"])
        assert not list(cache_dir.glob("cache-*.html"))

    def test_clear_one_action(self, client, cache_dir):
        """Scenario: clear-one removes a single entry by numeric id."""
        client.get("/resources/42", headers=UNLOCKED)

        response = client.post(
            "/admin/cache/actions",
            headers=OPERATOR,
            json={"action": "clear_one", "resource_id": 42, "nonce": self._nonce(client)},
        )

        assert response.json()["result"]["status"] == "removed"
        assert not (cache_dir / "cache-42.html").exists()

    def test_clear_one_without_id(self, client):
        response = client.post(
            "/admin/cache/actions",
            headers=OPERATOR,
            json={"action": "clear_one", "nonce": self._nonce(client)},
        )

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_clear_one_unsafe_id_reports_error(self, client):
        """An unsafe id is an action status, not an HTTP error."""
        response = client.post(
            "/admin/cache/actions",
            headers=OPERATOR,
            json={"action": "clear_one", "resource_id": "../ppsc-debug", "nonce": self._nonce(client)},
        )

        assert response.status_code == 200
        assert response.json()["result"]["status"] == "error"

    def test_preload_action(self, client, fetched):
        """Preload fetches the public URL of every gated resource."""
        response = client.post(
            "/admin/cache/actions",
            headers=OPERATOR,
            json={"action": "preload_all", "nonce": self._nonce(client)},
        )

        assert response.json()["result"]["count"] == 3
        assert fetched == [
            "https://members.example.com/resources/42",
            "https://members.example.com/resources/43",
            "https://intranet.example.com/docs/roadmap",
        ]

    def test_action_rejects_bad_nonce(self, client, cache_dir):
        """A forged or stale token changes nothing."""
        client.get("/resources/42", headers=UNLOCKED)

        response = client.post(
            "/admin/cache/actions",
            headers=OPERATOR,
            json={"action": "clear_all", "nonce": "forged"},
        )

        assert response.status_code == 400
        assert (cache_dir / "cache-42.html").exists()

    def test_action_requires_operator(self, client):
        nonce = self._nonce(client)

        response = client.post(
            "/admin/cache/actions",
            headers=UNLOCKED,
            json={"action": "clear_all", "nonce": nonce},
        )

        assert response.status_code == 403

    def test_unknown_action_rejected(self, client):
        response = client.post(
            "/admin/cache/actions",
            headers=OPERATOR,
            json={"action": "drop_tables", "nonce": self._nonce(client)},
        )

        assert response.status_code == 422

    def test_health(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-123"})

        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert response.json()["dependencies"] == {"cache_dir": "ok"}
        assert response.headers["x-request-id"] == "req-123"

    def test_metrics_expose_cache_decisions(self, client):
        client.get("/resources/42", headers=UNLOCKED)

        response = client.get("/metrics")

        assert response.status_code == 200
        assert 'cache_decisions_total{decision="cached"} 1.0' in response.text

    def test_injected_gate_evaluator(self, config, cache_dir):
        """A host-provided gate replaces the header-based default."""
        gate = StubGateEvaluator(gated=True, locked=False, privileged=False)
        app = create_app(gate, StaticResourceCatalog(), config)

        @app.get("/resources/{resource_id}")
        async def show_resource(resource_id: str):
            return HTMLResponse(unlocked_page(resource_id).decode("utf-8"))

        with TestClient(app) as client:
            response = client.get("/resources/7")

        assert response.content == CACHED + unlocked_page("7")
        assert (cache_dir / "cache-7.html").exists()
        assert gate.calls["is_gated_resource"] == 1

    def test_activation_failure_is_not_fatal(self, tmp_path):
        """An unusable cache location is reported and the service keeps serving."""
        blocker = tmp_path / "blocker"
        blocker.write_text("file, not a directory")
        service = ProtectedCacheService(config=get_config(cache_dir=blocker / "cache"))

        assert service.activate() is False

        @service.app.get("/resources/{resource_id}")
        async def show_resource(resource_id: str):
            return HTMLResponse(unlocked_page(resource_id).decode("utf-8"))

        with TestClient(service.app) as client:
            response = client.get("/resources/42", headers=UNLOCKED)
            health = client.get("/health")

        assert response.status_code == 200
        assert response.content == NOT_CACHED + unlocked_page("42")
        assert health.status_code == 200
        assert health.json()["status"] == "degraded"

    def test_default_secret_warns_outside_local(self, tmp_path):
        """Startup logs a warning while the shipped anti-forgery secret is in use."""
        service = ProtectedCacheService(config=get_config(cache_dir=tmp_path / "cache", env="production"))
        service.logger = MagicMock()

        with TestClient(service.app):
            pass

        warnings = [call.args[0] for call in service.logger.warning.call_args_list]
        assert "Default anti-forgery secret in use; set PPSC_NONCE_SECRET" in warnings

    def test_configured_secret_does_not_warn(self, tmp_path):
        service = ProtectedCacheService(config=get_config(
            cache_dir=tmp_path / "cache",
            env="production",
            nonce_secret="test-secret-with-enough-bytes-for-hs256",
        ))
        service.logger = MagicMock()

        with TestClient(service.app):
            pass

        service.logger.warning.assert_not_called()
