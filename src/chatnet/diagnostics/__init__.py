from chatnet.diagnostics.probe import (
    DiagnosticProbe,
    DiagnosticReport,
    EndpointProbeResult,
    HealthCheck,
    PingResult,
    generate_recommendations,
)

__all__ = [
    "DiagnosticProbe",
    "DiagnosticReport",
    "EndpointProbeResult",
    "HealthCheck",
    "PingResult",
    "generate_recommendations",
]
