"""
Typed wrappers over the router for the chat backend's REST endpoints.

Every method returns the router's :class:`~chatnet.net.outcome.ApiResponse`
unchanged, so callers see the same success, error and offline semantics as a
raw ``RequestRouter.request`` call.
"""

import time
import uuid
from typing import Any, Optional
from urllib.parse import urlencode

from pydantic import BaseModel

from chatnet.api.models import (
    AgentCreate,
    AgentUpdate,
    ChatMessageCreate,
    ConnectionTestResult,
    LoginRequest,
    RegisterRequest,
)
from chatnet.config.logging_config import get_logger
from chatnet.net.offline import LOGIN_PATH, USERS_PATH
from chatnet.net.outcome import ApiResponse
from chatnet.net.router import RequestRouter

log = get_logger(__name__)

HEALTH_PATH = "/health"
CHAT_PATH = "/api/v1/chat"
AGENTS_PATH = "/api/v1/agents"


def _dump(body: Any) -> Any:
    if isinstance(body, BaseModel):
        return body.model_dump(exclude_none=True)
    return body


def _with_query(path: str, **params: Any) -> str:
    query = {k: v for k, v in params.items() if v is not None}
    if not query:
        return path
    return f"{path}?{urlencode(query)}"


def new_request_id(user_id: int) -> str:
    """Idempotency key for one chat submission."""
    return f"msg_{user_id}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


class ChatApiClient:
    def __init__(self, router: RequestRouter):
        self.router = router

    async def test_connection(self) -> ConnectionTestResult:
        log.info("Testing API connection")
        result = await self.router.get(HEALTH_PATH)
        if result.status == 200:
            return ConnectionTestResult(working_url=self.router.working_url or self.router.table.primary.url)
        return ConnectionTestResult(working_url=None, error=result.error)

    # Authentication

    async def register_user(self, user: RegisterRequest | dict[str, Any]) -> ApiResponse:
        return await self.router.post(USERS_PATH, _dump(user))

    async def login_user(self, credentials: LoginRequest | dict[str, Any]) -> ApiResponse:
        return await self.router.post(LOGIN_PATH, _dump(credentials))

    # Chat

    async def send_message(
        self,
        user_id: int,
        message: str,
        response: Optional[str] = None,
        agent_id: Optional[int] = None,
    ) -> ApiResponse:
        body = ChatMessageCreate(
            user_id=user_id,
            message=message,
            request_id=new_request_id(user_id),
            response=response or None,
            agent_id=agent_id or None,
        )
        log.debug(f"Sending message for user {user_id} (agent {agent_id}, request {body.request_id})")
        return await self.router.post(f"{CHAT_PATH}/send", _dump(body))

    async def get_user_messages(
        self,
        user_id: int,
        skip: int = 0,
        limit: int = 50,
        agent_id: Optional[int] = None,
    ) -> ApiResponse:
        path = _with_query(f"{CHAT_PATH}/messages", user_id=user_id, skip=skip, limit=limit, agent_id=agent_id)
        return await self.router.get(path)

    async def delete_message(self, message_id: int, user_id: int) -> ApiResponse:
        return await self.router.delete(_with_query(f"{CHAT_PATH}/messages/{message_id}", user_id=user_id))

    async def delete_all_messages(self, user_id: int) -> ApiResponse:
        return await self.router.delete(_with_query(f"{CHAT_PATH}/messages", user_id=user_id))

    async def get_chat_statistics(self, user_id: int) -> ApiResponse:
        return await self.router.get(_with_query(f"{CHAT_PATH}/statistics", user_id=user_id))

    async def get_conversations(self, user_id: int) -> ApiResponse:
        return await self.router.get(_with_query(f"{CHAT_PATH}/conversations", user_id=user_id))

    # Agents

    async def get_agents(self, user_id: Optional[int] = None) -> ApiResponse:
        """Agents available to ``user_id``, or every active agent."""
        if user_id is not None:
            return await self.router.get(f"{AGENTS_PATH}/user/{user_id}/available")
        return await self.router.get(f"{AGENTS_PATH}/active/list")

    async def get_unchatted_agents(self, user_id: int) -> ApiResponse:
        return await self.router.get(f"{AGENTS_PATH}/user/{user_id}/unchatted")

    async def get_agent(self, agent_id: int) -> ApiResponse:
        return await self.router.get(f"{AGENTS_PATH}/{agent_id}")

    async def create_agent(self, agent: AgentCreate | dict[str, Any], user_id: Optional[int] = None) -> ApiResponse:
        body = dict(_dump(agent))
        if user_id is not None:
            body["user_id"] = user_id
        return await self.router.post(f"{AGENTS_PATH}/", body)

    async def update_agent(self, agent_id: int, agent: AgentUpdate | dict[str, Any], user_id: int) -> ApiResponse:
        return await self.router.put(_with_query(f"{AGENTS_PATH}/{agent_id}", user_id=user_id), _dump(agent))

    async def delete_agent(self, agent_id: int, user_id: int) -> ApiResponse:
        return await self.router.delete(_with_query(f"{AGENTS_PATH}/{agent_id}", user_id=user_id))
