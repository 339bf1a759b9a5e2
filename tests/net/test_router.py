import httpx
import pytest

from chatnet.config.network import NETWORK_ERROR_MESSAGES, NetworkBudget
from chatnet.net.errors import HttpStatusError, NetworkUnavailableError
from chatnet.net.offline import LOGIN_PATH, USERS_PATH
from chatnet.net.router import RequestRouter, http_error_message
from chatnet.net.outcome import HttpError


class Backend:
    """Mock HTTP backend: hosts in ``down`` refuse connections."""

    def __init__(self, responses=None):
        self.down: set[str] = set()
        self.calls: list[str] = []
        self.responses = responses or {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        host = request.url.host
        self.calls.append(host)
        if host in self.down:
            raise httpx.ConnectError("Connection refused", request=request)
        status, body = self.responses.get(host, (200, {"host": host}))
        return httpx.Response(status, json=body)


class TestFallback:
    @pytest.mark.asyncio
    async def test_falls_back_in_table_order(self, table, make_fetch):
        backend = Backend()
        backend.down.add("primary.test")
        router = RequestRouter(table, make_fetch(backend))

        response = await router.get("/api/v1/agents/active/list")

        assert response.ok
        assert response.data == {"host": "fallback.test"}
        assert backend.calls == ["primary.test", "fallback.test"]

    @pytest.mark.asyncio
    async def test_http_error_is_not_retried(self, table, make_fetch):
        backend = Backend({"primary.test": (500, {"detail": "boom"})})
        router = RequestRouter(table, make_fetch(backend))

        response = await router.get("/api/v1/chat/statistics?user_id=1")

        assert response.status == 500
        assert response.error == "boom"
        assert backend.calls == ["primary.test"]

    @pytest.mark.asyncio
    async def test_working_url_is_tried_first(self, table, make_fetch):
        backend = Backend()
        backend.down.add("primary.test")
        router = RequestRouter(table, make_fetch(backend))

        await router.get("/health")
        assert router.working_url == "http://fallback.test"

        backend.calls.clear()
        backend.down.clear()
        await router.get("/health")
        assert backend.calls == ["fallback.test"]

    @pytest.mark.asyncio
    async def test_working_url_falls_back_to_table_when_it_dies(self, table, make_fetch):
        backend = Backend()
        backend.down.add("primary.test")
        router = RequestRouter(table, make_fetch(backend))
        await router.get("/health")

        backend.calls.clear()
        backend.down = {"fallback.test"}
        response = await router.get("/health")

        assert response.data == {"host": "primary.test"}
        assert backend.calls == ["fallback.test", "primary.test"]
        assert router.working_url == "http://primary.test"

    @pytest.mark.asyncio
    async def test_http_error_does_not_update_working_url(self, table, make_fetch):
        backend = Backend({"fallback.test": (404, {})})
        backend.down.add("primary.test")
        router = RequestRouter(table, make_fetch(backend))

        response = await router.get("/api/v1/agents/7")

        assert response.status == 404
        assert router.working_url is None
        assert router.candidates() == ["http://primary.test", "http://fallback.test"]

    @pytest.mark.asyncio
    async def test_reset_working_url(self, table, make_fetch):
        backend = Backend()
        backend.down.add("primary.test")
        router = RequestRouter(table, make_fetch(backend))
        await router.get("/health")

        router.reset_working_url()
        assert router.working_url is None
        assert router.candidates()[0] == "http://primary.test"

    @pytest.mark.asyncio
    async def test_timeouts_fall_back(self, table, make_fetch):
        def handler(request):
            if request.url.host == "primary.test":
                raise httpx.ConnectTimeout("timed out", request=request)
            return httpx.Response(200, json={})

        budget = NetworkBudget(
            timeout=0.5, retry_attempts=1, retry_delay=0.0, reconnect_delay_max=0.0, max_reconnect_attempts=1
        )
        router = RequestRouter(table, make_fetch(handler), budget=budget)
        response = await router.get("/health")
        assert response.ok
        assert router.working_url == "http://fallback.test"


class TestExhaustion:
    @pytest.mark.asyncio
    async def test_login_serves_demo_payload(self, table, make_fetch):
        backend = Backend()
        backend.down.update({"primary.test", "fallback.test"})
        router = RequestRouter(table, make_fetch(backend))

        response = await router.post(LOGIN_PATH, {"email": "a@b.c", "password": "x"})

        assert response.status == 200
        assert response.offline is True
        assert response.error is None
        assert response.data["access_token"] == "mock_token_123"
        assert response.data["user"]["email"] == "demo@example.com"
        assert list(router.last_exhaustion.failures) == ["http://primary.test", "http://fallback.test"]

    @pytest.mark.asyncio
    async def test_register_serves_demo_user(self, table, make_fetch):
        backend = Backend()
        backend.down.update({"primary.test", "fallback.test"})
        router = RequestRouter(table, make_fetch(backend))

        response = await router.post(USERS_PATH, {"email": "a@b.c"})
        assert response.offline
        assert response.data["full_name"] == "Demo User"

    @pytest.mark.asyncio
    async def test_offline_payload_is_a_copy(self, table, make_fetch):
        backend = Backend()
        backend.down.update({"primary.test", "fallback.test"})
        router = RequestRouter(table, make_fetch(backend))

        first = await router.post(LOGIN_PATH)
        first.data["user"]["email"] = "changed"
        second = await router.post(LOGIN_PATH)
        assert second.data["user"]["email"] == "demo@example.com"

    @pytest.mark.asyncio
    async def test_other_paths_report_connection_failed(self, table, make_fetch):
        backend = Backend()
        backend.down.update({"primary.test", "fallback.test"})
        router = RequestRouter(table, make_fetch(backend))

        response = await router.post("/api/v1/chat/send", {"message": "hi"})

        assert response.status == 0
        assert response.offline is False
        assert response.error.startswith(NETWORK_ERROR_MESSAGES["CONNECTION_FAILED"])
        assert "Endpoint: /api/v1/chat/send" in response.error
        with pytest.raises(NetworkUnavailableError):
            response.raise_for_error()

    @pytest.mark.asyncio
    async def test_offline_mode_disabled(self, table, make_fetch):
        backend = Backend()
        backend.down.update({"primary.test", "fallback.test"})
        router = RequestRouter(table, make_fetch(backend), offline_mode=False)

        response = await router.post(LOGIN_PATH)
        assert response.status == 0
        assert response.data is None


class TestErrorMessages:
    def test_duplicate_and_rate_limit_messages(self):
        assert "Duplicate message" in http_error_message(HttpError(status_code=409, body={"detail": "x"}))
        assert "Too many messages" in http_error_message(HttpError(status_code=429))

    def test_detail_then_status(self):
        assert http_error_message(HttpError(status_code=400, body={"detail": "Bad email"})) == "Bad email"
        assert http_error_message(HttpError(status_code=422, body={"detail": [{"loc": []}]})) == "HTTP 422"

    @pytest.mark.asyncio
    async def test_raise_for_error_carries_status(self, table, make_fetch):
        router = RequestRouter(table, make_fetch(Backend({"primary.test": (403, {"detail": "Forbidden"})})))
        response = await router.delete("/api/v1/agents/3?user_id=1")
        with pytest.raises(HttpStatusError) as exc_info:
            response.raise_for_error()
        assert exc_info.value.status == 403
