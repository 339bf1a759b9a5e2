"""Connectivity diagnostics for the "test connection" action.

This module provides functionality for:
1. Probing the health path of every configured endpoint
2. Reporting which endpoint works and why the others failed
3. Suggesting platform-specific fixes when nothing is reachable

The probe is read-only. It uses its own fetcher calls and never changes the
router's working URL or the realtime client's state.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Optional

from chatnet.config.logging_config import get_logger
from chatnet.config.network import Platform
from chatnet.net.endpoints import EndpointTable
from chatnet.net.fetch import RequestOptions, TimeoutFetch
from chatnet.net.outcome import HttpError, NetworkError, Success, Timeout
from chatnet.net.urls import get_url_type

log = get_logger(__name__)

HEALTH_PATH = "/health"

_PROBE_HEADERS = {"Accept": "application/json"}

PLATFORM_RECOMMENDATIONS: dict[tuple[Platform, bool], list[str]] = {
    (Platform.ANDROID, True): [
        "Android Emulator detected:",
        "  - Use 10.0.2.2:8000 to connect to your host machine",
        "  - Make sure your backend is running on localhost:8000",
        "  - Check that your backend accepts connections from all interfaces",
    ],
    (Platform.ANDROID, False): [
        "Physical Android Device detected:",
        "  - Make sure your device and computer are on the same WiFi network",
        "  - Use your computer's LAN IP address (e.g., 192.168.1.10:8000)",
        "  - Check your computer's firewall settings",
        "  - Ensure your backend is configured to accept external connections",
    ],
    (Platform.IOS, True): [
        "iOS Simulator detected:",
        "  - Use localhost:8000 to reach the backend on your Mac",
        "  - Check that your backend is running and accessible",
    ],
    (Platform.IOS, False): [
        "iOS Device detected:",
        "  - Use your computer's LAN IP for a physical device",
        "  - Make sure the device and computer share a WiFi network",
        "  - Check that your backend is running and accessible",
    ],
}

GENERAL_RECOMMENDATIONS = [
    "General Network Troubleshooting:",
    "  1. Make sure your backend server is running",
    "  2. Check that the server is listening on the correct port (8000)",
    "  3. Verify the server accepts connections from all interfaces (0.0.0.0)",
    "  4. Check your firewall/antivirus settings",
    "  5. Try accessing the API from a web browser first",
]

BACKEND_RECOMMENDATIONS = [
    "Backend Configuration:",
    "  - Ensure your FastAPI server is running with: uvicorn main:app --host 0.0.0.0 --port 8000",
    "  - Check that CORS is properly configured for your app",
    "  - Verify the API endpoints are working with a tool like Postman",
]


@dataclass
class EndpointProbeResult:
    """Outcome of probing one endpoint."""

    url: str
    url_type: str
    ok: bool
    status: int = 0
    error: Optional[str] = None
    latency_ms: float = 0.0


@dataclass
class DiagnosticReport:
    is_connected: bool
    working_url: Optional[str]
    errors: list[str]
    recommendations: list[str]
    platform: str
    device_info: dict[str, Any]
    results: list[EndpointProbeResult] = field(default_factory=list)


@dataclass
class HealthCheck:
    is_healthy: bool
    details: str


@dataclass
class PingResult:
    success: bool
    latency_ms: float
    error: Optional[str] = None


def generate_recommendations(platform: Platform, is_emulator: bool) -> list[str]:
    """Troubleshooting steps for a platform with no reachable endpoint."""
    recommendations = list(PLATFORM_RECOMMENDATIONS.get((platform, is_emulator), []))
    recommendations.extend(GENERAL_RECOMMENDATIONS)
    recommendations.extend(BACKEND_RECOMMENDATIONS)
    return recommendations


class DiagnosticProbe:
    def __init__(
        self,
        table: EndpointTable,
        fetch: TimeoutFetch,
        platform: Platform = Platform.DESKTOP,
        is_emulator: bool = False,
        health_path: str = HEALTH_PATH,
        timeout: float = 10.0,
    ):
        self.table = table
        self.fetch = fetch
        self.platform = platform
        self.is_emulator = is_emulator
        self.health_path = health_path
        self.timeout = timeout

    async def _probe(self, url: str, timeout: float) -> EndpointProbeResult:
        started = time.perf_counter()
        outcome = await self.fetch.execute(
            url,
            self.health_path,
            RequestOptions(method="GET", headers=_PROBE_HEADERS),
            timeout=timeout,
        )
        latency_ms = (time.perf_counter() - started) * 1000.0
        result = EndpointProbeResult(url=url, url_type=get_url_type(url), ok=False, latency_ms=latency_ms)

        if isinstance(outcome, Success):
            result.ok = True
            result.status = outcome.status_code
        elif isinstance(outcome, HttpError):
            result.status = outcome.status_code
            result.error = f"HTTP {outcome.status_code}"
        elif isinstance(outcome, Timeout):
            result.error = f"Timed out after {outcome.timeout_seconds}s"
        elif isinstance(outcome, NetworkError):
            result.error = outcome.message

        log.info(f"Probe {url}{self.health_path}: {'SUCCESS' if result.ok else result.error}")
        return result

    async def diagnose(self) -> DiagnosticReport:
        """Probe every endpoint in table order and build a report."""
        log.info("Starting network diagnosis")
        report = DiagnosticReport(
            is_connected=False,
            working_url=None,
            errors=[],
            recommendations=[],
            platform=self.platform.value,
            device_info={
                "platform": self.platform.value,
                "is_emulator": self.is_emulator,
                "is_physical_device": not self.is_emulator,
            },
        )

        for endpoint in self.table:
            result = await self._probe(endpoint.url, self.timeout)
            report.results.append(result)
            if result.ok:
                if report.working_url is None:
                    report.working_url = endpoint.url
                    report.is_connected = True
            else:
                report.errors.append(f"{endpoint.url}: {result.error}")

        if report.is_connected:
            report.recommendations.append("Network connection is working!")
        else:
            report.errors.append("No working URLs found")
            report.recommendations = generate_recommendations(self.platform, self.is_emulator)

        return report

    async def test_backend_health(self, timeout: float = 5.0) -> HealthCheck:
        """Check the primary endpoint's health path only."""
        url = self.table.primary.url
        outcome = await self.fetch.execute(url, self.health_path, RequestOptions(), timeout=timeout)
        if isinstance(outcome, Success):
            return HealthCheck(is_healthy=True, details=f"Backend is healthy: {outcome.body}")
        if isinstance(outcome, HttpError):
            return HealthCheck(is_healthy=False, details=f"Backend responded with status: {outcome.status_code}")
        reason = outcome.message if isinstance(outcome, NetworkError) else "timed out"
        return HealthCheck(is_healthy=False, details=f"Backend health check failed: {reason}")

    async def ping_backend(self) -> PingResult:
        """Round-trip latency to the primary endpoint's health path."""
        result = await self._probe(self.table.primary.url, self.timeout)
        return PingResult(success=result.ok, latency_ms=result.latency_ms, error=result.error)

    def get_network_info(self) -> dict[str, Any]:
        return {
            "base_url": self.table.primary.url,
            "fallback_urls": [e.url for e in self.table.fallbacks],
            "platform": self.platform.value,
            "is_emulator": self.is_emulator,
        }
