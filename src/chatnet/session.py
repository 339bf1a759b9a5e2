"""
Composition root for the chatnet network layer.

A ``ChatSession`` wires one fetcher, router, realtime client, diagnostic
probe and the API services together from a single configuration. Each
session owns its own state: there is no process-wide client.

Example:
    async with ChatSession() as session:
        login = await session.api.login_user({"email": email, "password": pw})
        await session.start_realtime(str(login.data["user"]["id"]), login.data["access_token"])
"""

from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from chatnet.api.client import ChatApiClient
from chatnet.api.profiles import UserProfileService
from chatnet.concurrency.retry import RetryPolicy
from chatnet.config.environment import Environment
from chatnet.config.logging_config import get_logger
from chatnet.config.network import (
    NETWORK_ERROR_MESSAGES,
    NetworkBudget,
    Platform,
    get_network_budget,
    get_socket_budget,
)
from chatnet.diagnostics.probe import DiagnosticProbe
from chatnet.net.endpoints import EndpointTable
from chatnet.net.errors import ConnectCancelledError, RealtimeConnectError
from chatnet.net.fetch import TimeoutFetch
from chatnet.net.router import RequestRouter
from chatnet.realtime.client import DEFAULT_QUEUE_CAPACITY, RealtimeClient
from chatnet.realtime.events import RealtimeEvent
from chatnet.realtime.transport import TransportFactory

log = get_logger(__name__)


@dataclass
class SessionConfig:
    """Static configuration for one session."""

    table: EndpointTable
    platform: Platform = Platform.DESKTOP
    is_emulator: bool = False
    offline_mode: bool = True
    queue_capacity: int = DEFAULT_QUEUE_CAPACITY
    network_budget: Optional[NetworkBudget] = None
    socket_budget: Optional[NetworkBudget] = None
    jitter: bool = True
    offline_responses: Optional[dict[str, Any]] = field(default=None, repr=False)

    def __post_init__(self):
        if self.network_budget is None:
            self.network_budget = get_network_budget(self.platform)
        if self.socket_budget is None:
            self.socket_budget = get_socket_budget(self.platform)

    @classmethod
    def from_environment(cls) -> "SessionConfig":
        return cls(
            table=Environment.get_endpoint_table(),
            platform=Environment.get_platform(),
            is_emulator=Environment.is_emulator(),
            offline_mode=Environment.is_offline_mode_enabled(),
            queue_capacity=Environment.get_queue_capacity(),
        )


class ChatSession:
    def __init__(
        self,
        config: Optional[SessionConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        transport_factory: Optional[TransportFactory] = None,
    ):
        """
        Args:
            config: Session configuration; read from ``Environment`` if omitted.
            http_client: Shared httpx client, mainly for tests.
            transport_factory: Realtime transport factory, mainly for tests.
        """
        self.config = config or SessionConfig.from_environment()
        assert self.config.network_budget is not None
        assert self.config.socket_budget is not None

        self.fetch = TimeoutFetch(
            platform=self.config.platform,
            client=http_client,
            default_timeout=self.config.network_budget.timeout,
        )
        self.router = RequestRouter(
            self.config.table,
            self.fetch,
            budget=self.config.network_budget,
            offline_mode=self.config.offline_mode,
            offline_responses=self.config.offline_responses,
        )
        self.realtime = RealtimeClient(
            self.config.table,
            budget=self.config.socket_budget,
            platform=self.config.platform,
            transport_factory=transport_factory,
            queue_capacity=self.config.queue_capacity,
            jitter=self.config.jitter,
        )
        self.probe = DiagnosticProbe(
            self.config.table,
            self.fetch,
            platform=self.config.platform,
            is_emulator=self.config.is_emulator,
            timeout=self.config.network_budget.timeout,
        )
        self.api = ChatApiClient(self.router)
        self.profiles = UserProfileService(self.router)

    async def start_realtime(
        self,
        identity: str,
        credential: Optional[str] = None,
        retries: Optional[int] = None,
    ) -> bool:
        """
        Connect the realtime channel, retrying the whole endpoint sweep.

        After ``retries`` failed retries (the platform's retry attempts by
        default) a single ``error`` event carrying the offline notice is
        dispatched and ``False`` is returned. Events emitted meanwhile stay
        queued for a later successful connect.

        A ``realtime.disconnect()`` made while this is still retrying stops
        the retries: ``False`` is returned and no ``error`` is dispatched.
        """
        budget = self.config.socket_budget
        assert budget is not None
        max_retries = budget.retry_attempts if retries is None else retries
        policy = RetryPolicy(
            max_retries=max_retries,
            initial_delay=budget.retry_delay,
            exponential_base=budget.backoff_multiplier,
            jitter=self.config.jitter,
            retryable_exceptions=(RealtimeConnectError,),
        )

        def _log_retry(attempt: int, error: Exception, delay: float) -> None:
            log.info(f"Realtime connect attempt {attempt}/{policy.max_attempts} failed, retrying in {delay:.2f}s")

        generation = self.realtime.disconnect_generation

        async def _attempt() -> None:
            if self.realtime.disconnect_generation != generation:
                raise ConnectCancelledError("Realtime connect cancelled by disconnect")
            await self.realtime.connect(identity, credential)

        try:
            await policy.execute(_attempt, on_retry=_log_retry)
        except ConnectCancelledError:
            log.info("Realtime connect retries stopped by disconnect")
            return False
        except RealtimeConnectError as e:
            log.error(f"Max realtime connect attempts reached, falling back to offline mode: {e}")
            self.realtime.events.dispatch(
                RealtimeEvent.ERROR,
                RealtimeConnectError(
                    f"Realtime connection failed after {policy.max_attempts} attempts. "
                    f"{NETWORK_ERROR_MESSAGES['OFFLINE_MODE']}",
                    e.failures,
                ),
            )
            return False
        return True

    async def aclose(self) -> None:
        await self.realtime.disconnect()
        await self.fetch.aclose()

    async def __aenter__(self) -> "ChatSession":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()
