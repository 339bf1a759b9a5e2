import json
import re

import httpx
import pytest

from chatnet.api.client import ChatApiClient, new_request_id
from chatnet.api.models import AgentCreate, AgentUpdate, RegisterRequest
from chatnet.net.router import RequestRouter


class RecordingBackend:
    def __init__(self, status: int = 200, body=None):
        self.status = status
        self.body = {} if body is None else body
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status, json=self.body)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    def last_target(self) -> str:
        return f"{self.last.method} {self.last.url.raw_path.decode()}"

    def last_json(self):
        return json.loads(self.last.content)


@pytest.fixture
def backend():
    return RecordingBackend()


@pytest.fixture
def api(table, make_fetch, backend):
    return ChatApiClient(RequestRouter(table, make_fetch(backend)))


class TestChatEndpoints:
    @pytest.mark.asyncio
    async def test_send_message_adds_request_id(self, api, backend):
        await api.send_message(5, "hello", agent_id=2)

        assert backend.last_target() == "POST /api/v1/chat/send"
        body = backend.last_json()
        assert body["user_id"] == 5
        assert body["message"] == "hello"
        assert body["agent_id"] == 2
        assert "response" not in body
        assert re.fullmatch(r"msg_5_\d+_[0-9a-f]{9}", body["request_id"])

    @pytest.mark.asyncio
    async def test_each_send_has_a_unique_request_id(self, api, backend):
        await api.send_message(5, "a")
        await api.send_message(5, "a")
        ids = {json.loads(r.content)["request_id"] for r in backend.requests}
        assert len(ids) == 2

    def test_request_id_format(self):
        assert new_request_id(3).startswith("msg_3_")

    @pytest.mark.asyncio
    async def test_message_history_query(self, api, backend):
        await api.get_user_messages(5, skip=10, limit=20)
        assert backend.last_target() == "GET /api/v1/chat/messages?user_id=5&skip=10&limit=20"

        await api.get_user_messages(5, agent_id=3)
        assert backend.last_target() == "GET /api/v1/chat/messages?user_id=5&skip=0&limit=50&agent_id=3"

    @pytest.mark.asyncio
    async def test_delete_and_statistics(self, api, backend):
        await api.delete_message(9, 5)
        assert backend.last_target() == "DELETE /api/v1/chat/messages/9?user_id=5"
        await api.delete_all_messages(5)
        assert backend.last_target() == "DELETE /api/v1/chat/messages?user_id=5"
        await api.get_chat_statistics(5)
        assert backend.last_target() == "GET /api/v1/chat/statistics?user_id=5"
        await api.get_conversations(5)
        assert backend.last_target() == "GET /api/v1/chat/conversations?user_id=5"


class TestAgentEndpoints:
    @pytest.mark.asyncio
    async def test_listing(self, api, backend):
        await api.get_agents()
        assert backend.last_target() == "GET /api/v1/agents/active/list"
        await api.get_agents(5)
        assert backend.last_target() == "GET /api/v1/agents/user/5/available"
        await api.get_unchatted_agents(5)
        assert backend.last_target() == "GET /api/v1/agents/user/5/unchatted"
        await api.get_agent(2)
        assert backend.last_target() == "GET /api/v1/agents/2"

    @pytest.mark.asyncio
    async def test_create_update_delete(self, api, backend):
        agent = AgentCreate(name="Coach", personality="warm", feedback_style="gentle", system_prompt="Be kind")
        await api.create_agent(agent, user_id=5)
        assert backend.last_target() == "POST /api/v1/agents/"
        assert backend.last_json()["user_id"] == 5
        assert backend.last_json()["name"] == "Coach"

        await api.update_agent(2, AgentUpdate(is_active=False), user_id=5)
        assert backend.last_target() == "PUT /api/v1/agents/2?user_id=5"
        assert backend.last_json() == {"is_active": False}

        await api.delete_agent(2, user_id=5)
        assert backend.last_target() == "DELETE /api/v1/agents/2?user_id=5"


class TestAuthAndHealth:
    @pytest.mark.asyncio
    async def test_register_and_login(self, api, backend):
        await api.register_user(RegisterRequest(email="a@b.c", full_name="A", password="pw"))
        assert backend.last_target() == "POST /api/v1/users/"
        assert backend.last_json() == {"email": "a@b.c", "full_name": "A", "password": "pw"}

        await api.login_user({"email": "a@b.c", "password": "pw"})
        assert backend.last_target() == "POST /api/v1/users/login"

    @pytest.mark.asyncio
    async def test_connection_ok(self, api):
        result = await api.test_connection()
        assert result.working_url == "http://primary.test"
        assert result.error is None

    @pytest.mark.asyncio
    async def test_connection_failed(self, table, make_fetch):
        def handler(request):
            raise httpx.ConnectError("Connection refused", request=request)

        api = ChatApiClient(RequestRouter(table, make_fetch(handler)))
        result = await api.test_connection()
        assert result.working_url is None
        assert "All connection attempts failed" in result.error
