"""
Request routing across the endpoint table.

``RequestRouter.request`` tries each candidate base URL in turn through
:class:`~chatnet.net.fetch.TimeoutFetch` until one of them is reachable.
Candidates are tried one at a time: fallback is never issued concurrently,
so the first reachable endpoint in order always wins.
"""

from typing import Any, Mapping, Optional

from chatnet.config.logging_config import get_logger
from chatnet.config.network import NETWORK_ERROR_MESSAGES, NetworkBudget, get_network_budget
from chatnet.net.endpoints import EndpointTable
from chatnet.net.errors import ExhaustionError
from chatnet.net.fetch import RequestOptions, TimeoutFetch
from chatnet.net.offline import DEFAULT_OFFLINE_RESPONSES, get_offline_payload
from chatnet.net.outcome import ApiResponse, HttpError, NetworkError, Success, Timeout

log = get_logger(__name__)

_STATUS_MESSAGES = {
    409: "Duplicate message detected - this message was already sent",
    429: "Too many messages sent too quickly - please wait a moment",
}


def http_error_message(outcome: HttpError) -> str:
    """Caller-facing message for an error response."""
    if outcome.status_code in _STATUS_MESSAGES:
        return _STATUS_MESSAGES[outcome.status_code]
    body = outcome.body
    if isinstance(body, dict):
        detail = body.get("detail")
        if isinstance(detail, str) and detail:
            return detail
    return f"HTTP {outcome.status_code}"


class RequestRouter:
    """
    Routes requests to the first reachable backend endpoint.

    The router remembers the last base URL that returned a successful
    response and tries it first on the next call. Only ``Success`` updates the
    working URL: an endpoint answering with an error status is reachable, but
    is not promoted ahead of the primary.

    The working URL is a plain attribute with last-writer-wins semantics.
    Concurrent ``request`` calls on one event loop are safe; each runs its own
    sequential fallback loop.
    """

    def __init__(
        self,
        table: EndpointTable,
        fetch: TimeoutFetch,
        budget: Optional[NetworkBudget] = None,
        offline_mode: bool = True,
        offline_responses: Optional[Mapping[str, Any]] = None,
    ):
        self.table = table
        self.fetch = fetch
        self.budget = budget or get_network_budget(fetch.platform)
        self.offline_mode = offline_mode
        self.offline_responses: Mapping[str, Any] = (
            DEFAULT_OFFLINE_RESPONSES if offline_responses is None else offline_responses
        )
        self._working_url: Optional[str] = None
        self.last_exhaustion: Optional[ExhaustionError] = None

    @property
    def working_url(self) -> Optional[str]:
        return self._working_url

    def reset_working_url(self) -> None:
        self._working_url = None

    def candidates(self) -> list[str]:
        """Base URLs in the order the next request will try them."""
        ordered: list[str] = []
        if self._working_url is not None:
            ordered.append(self._working_url)
        for endpoint in self.table:
            if endpoint.url not in ordered:
                ordered.append(endpoint.url)
        return ordered

    async def request(self, path: str, options: Optional[RequestOptions] = None) -> ApiResponse:
        """
        Send ``path`` to the first reachable endpoint.

        Returns:
            ``ApiResponse`` with ``data`` on success, ``error`` and the status
            on an error response, the canned offline payload (status 200) for
            allow-listed paths when nothing is reachable, or an error with
            status 0 otherwise.
        """
        options = options or RequestOptions()
        failures: dict[str, str] = {}

        log.debug(f"{options.method} {path}")
        for base_url in self.candidates():
            outcome = await self.fetch.execute(base_url, path, options, timeout=self.budget.timeout)

            if isinstance(outcome, Success):
                self._working_url = base_url
                return ApiResponse(data=outcome.body, status=outcome.status_code)

            if isinstance(outcome, HttpError):
                return ApiResponse(error=http_error_message(outcome), status=outcome.status_code)

            if isinstance(outcome, Timeout):
                failures[base_url] = NETWORK_ERROR_MESSAGES["TIMEOUT"]
            elif isinstance(outcome, NetworkError):
                failures[base_url] = outcome.message
            log.info(f"Endpoint {base_url} unreachable for {path}: {failures[base_url]}")

        message = f"{NETWORK_ERROR_MESSAGES['CONNECTION_FAILED']} Endpoint: {path}"
        self.last_exhaustion = ExhaustionError(path, failures, message)

        if self.offline_mode:
            payload = get_offline_payload(path, self.offline_responses)
            if payload is not None:
                log.warning(f"All endpoints failed for {path}; serving offline response")
                return ApiResponse(data=payload, status=200, offline=True)

        log.error(f"All endpoints failed for {path}")
        return ApiResponse(error=message, status=0)

    async def get(self, path: str, headers: Optional[dict[str, str]] = None) -> ApiResponse:
        return await self.request(path, RequestOptions(method="GET", headers=headers or {}))

    async def post(self, path: str, body: Any = None, headers: Optional[dict[str, str]] = None) -> ApiResponse:
        return await self.request(path, RequestOptions(method="POST", body=body, headers=headers or {}))

    async def put(self, path: str, body: Any = None, headers: Optional[dict[str, str]] = None) -> ApiResponse:
        return await self.request(path, RequestOptions(method="PUT", body=body, headers=headers or {}))

    async def delete(self, path: str, headers: Optional[dict[str, str]] = None) -> ApiResponse:
        return await self.request(path, RequestOptions(method="DELETE", headers=headers or {}))
