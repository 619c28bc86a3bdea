from .engine import AutoFixer, Diagnosis, DiagnosticsEngine, FixOutcome, SystemState
from .error_map import ExplainedError, explain
from .probes import ProbeClient, ProbeResult

__all__ = [
    "AutoFixer",
    "Diagnosis",
    "DiagnosticsEngine",
    "FixOutcome",
    "SystemState",
    "ExplainedError",
    "explain",
    "ProbeClient",
    "ProbeResult",
]
