"""
Single-attempt HTTP executor with a hard deadline.

``TimeoutFetch.execute`` issues exactly one request against one base URL and
classifies what happened as a :mod:`chatnet.net.outcome` value. It never
retries and never touches shared state; fallback across endpoints is the
router's job.
"""

import json
from typing import Any, Optional

import httpx
from pydantic import BaseModel, Field

from chatnet.concurrency.timeout import TimeoutError, with_timeout
from chatnet.config.logging_config import get_logger
from chatnet.config.network import Platform, get_network_budget, get_platform_headers
from chatnet.net.outcome import HttpError, NetworkError, RequestOutcome, Success, Timeout
from chatnet.net.urls import join_url, validate_base_url

log = get_logger(__name__)


class RequestOptions(BaseModel):
    """Method, JSON body and extra headers for one request."""

    method: str = "GET"
    body: Any = None
    headers: dict[str, str] = Field(default_factory=dict)


def parse_body(response: httpx.Response) -> Any:
    """Decode a JSON body, falling back to an empty object."""
    if not response.content:
        return {}
    try:
        return response.json()
    except (json.JSONDecodeError, UnicodeDecodeError, ValueError):
        return {}


class TimeoutFetch:
    """
    Executes one HTTP call against one base URL with a deadline.

    The deadline is enforced by cancelling the in-flight call, so a server
    that never answers produces ``Timeout`` after ``timeout`` seconds rather
    than hanging the caller.
    """

    def __init__(
        self,
        platform: Platform = Platform.DESKTOP,
        client: Optional[httpx.AsyncClient] = None,
        default_timeout: Optional[float] = None,
    ):
        """
        Args:
            platform: Selects the default deadline and the extra headers.
            client: Shared httpx client; one is created lazily if omitted.
            default_timeout: Deadline in seconds when ``execute`` gets none.
        """
        self.platform = platform
        self.default_timeout = (
            default_timeout if default_timeout is not None else get_network_budget(platform).timeout
        )
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            log.debug("Creating HTTP client")
            # Redirects are reported as-is; deadlines come from with_timeout
            self._client = httpx.AsyncClient(follow_redirects=False, timeout=None)
            self._owns_client = True
        return self._client

    def build_headers(self, extra: Optional[dict[str, str]] = None) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        headers.update(get_platform_headers(self.platform))
        if extra:
            headers.update(extra)
        return headers

    async def execute(
        self,
        base_url: str,
        path: str,
        options: Optional[RequestOptions] = None,
        timeout: Optional[float] = None,
    ) -> RequestOutcome:
        """
        Issue one request and classify the result.

        Args:
            base_url: Absolute backend base URL.
            path: Request path, may include a query string.
            options: Method, body and headers.
            timeout: Deadline in seconds; defaults to the platform budget.

        Returns:
            ``Success`` for 2xx/3xx, ``HttpError`` for other statuses,
            ``NetworkError`` when the call failed, ``Timeout`` on deadline.

        Raises:
            ValueError: If ``base_url`` is malformed.
        """
        options = options or RequestOptions()
        deadline = timeout if timeout is not None else self.default_timeout
        url = join_url(validate_base_url(base_url), path)
        headers = self.build_headers(options.headers)

        content: Optional[bytes] = None
        if options.body is not None:
            if isinstance(options.body, bytes):
                content = options.body
            elif isinstance(options.body, str):
                content = options.body.encode("utf-8")
            else:
                content = json.dumps(options.body).encode("utf-8")

        client = self._get_client()
        method = options.method.upper()
        log.debug(f"{method} {url} (deadline {deadline}s)")

        try:
            response = await with_timeout(
                lambda: client.request(method, url, content=content, headers=headers),
                timeout_seconds=deadline,
            )
        except TimeoutError:
            log.warning(f"Timed out after {deadline}s: {method} {url}")
            return Timeout(timeout_seconds=deadline)
        except httpx.TimeoutException:
            log.warning(f"Transport timeout: {method} {url}")
            return Timeout(timeout_seconds=deadline)
        except httpx.RequestError as e:
            message = str(e) or type(e).__name__
            log.warning(f"Network error for {url}: {message}")
            return NetworkError(message=message)
        except OSError as e:
            log.warning(f"Socket error for {url}: {e}")
            return NetworkError(message=str(e) or type(e).__name__)

        body = parse_body(response)
        if 200 <= response.status_code < 400:
            log.debug(f"{response.status_code} from {url}")
            return Success(status_code=response.status_code, body=body)

        log.info(f"HTTP {response.status_code} from {url}")
        return HttpError(status_code=response.status_code, body=body)

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "TimeoutFetch":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()
