"""Layered system diagnosis and bounded automatic repair."""

from __future__ import annotations

from enum import Enum

from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from src.bridge.core.errors import ErrorCode, JWT_ERROR_CODES
from src.bridge.core.models.bootstrap import ReadinessReport
from src.bridge.core.services.diagnostics.error_map import ExplainedError, explain
from src.bridge.core.services.diagnostics.probes import ProbeClient, ProbeResult

_JWT_CODES = frozenset(code.value for code in JWT_ERROR_CODES)


class SystemState(str, Enum):
    HOST_UNREACHABLE = "host_unreachable"
    EDGE_NOT_DEPLOYED = "edge_not_deployed"
    RPC_MISSING = "rpc_missing"
    SCHEMA_INCOMPLETE = "schema_incomplete"
    BRIDGE_UNAUTHORIZED = "bridge_unauthorized"
    READY = "ready"

    @property
    def fixable(self) -> bool:
        return self in _FIXABLE

    @property
    def instructions(self) -> str:
        return _INSTRUCTIONS[self]


_FIXABLE = frozenset(
    {SystemState.RPC_MISSING, SystemState.SCHEMA_INCOMPLETE, SystemState.BRIDGE_UNAUTHORIZED}
)

_INSTRUCTIONS = {
    SystemState.HOST_UNREACHABLE: "Check SUPABASE_URL and network access to the data platform.",
    SystemState.EDGE_NOT_DEPLOYED: "Deploy the bridge service and point BRIDGE_URL at it.",
    SystemState.RPC_MISSING: "Run the setup command to install the bootstrap procedures.",
    SystemState.SCHEMA_INCOMPLETE: "Call the bootstrap endpoint (validate --fix does this).",
    SystemState.BRIDGE_UNAUTHORIZED: (
        "Check CLERK_JWT_ISSUER, CLERK_EXPECTED_AUDIENCE, SUPABASE_JWT_SECRET "
        "and that CLERK_TEST_JWT is a fresh token."
    ),
    SystemState.READY: "Nothing to do.",
}


class Diagnosis(BaseModel):
    state: SystemState
    probes: list[ProbeResult] = Field(default_factory=list)
    report: ReadinessReport | None = None
    explanation: ExplainedError | None = None

    @property
    def ready(self) -> bool:
        return self.state is SystemState.READY

    def probe(self, name: str) -> ProbeResult | None:
        return next((p for p in self.probes if p.name == name), None)


def _report_from(probe: ProbeResult) -> ReadinessReport | None:
    if not probe.ok or not isinstance(probe.body, dict):
        return None
    try:
        return ReadinessReport.model_validate(probe.body.get("status") or {})
    except ValidationError:
        return None


def _failure_text(probe: ProbeResult) -> str:
    parts = [probe.code or "", probe.detail]
    if probe.status_code is not None:
        parts.append(str(probe.status_code))
    return " ".join(p for p in parts if p)


class DiagnosticsEngine:
    """Runs the probes in order; the first matching state wins."""

    def __init__(self, probes: ProbeClient):
        self._probes = probes

    async def diagnose(self) -> Diagnosis:
        host = await self._probes.host()
        if not host.ok:
            return self._done(SystemState.HOST_UNREACHABLE, [host], culprit=host)

        federation = await self._probes.federation()
        if not federation.reachable or federation.not_found:
            status = await self._probes.status()
            return self._done(
                SystemState.EDGE_NOT_DEPLOYED, [host, federation, status], _report_from(status),
                culprit=federation, fallback="not_deployed",
            )

        bootstrap = await self._probes.bootstrap_endpoint()
        status = await self._probes.status()
        probes = [host, federation, bootstrap, status]
        report = _report_from(status)

        if not bootstrap.reachable or bootstrap.not_found:
            return self._done(
                SystemState.EDGE_NOT_DEPLOYED, probes, report,
                culprit=bootstrap, fallback="not_deployed",
            )

        if status.code == ErrorCode.BOOTSTRAP_RPC_MISSING.value:
            return self._done(SystemState.RPC_MISSING, probes, report, culprit=status)

        if report is not None and not report.ready:
            return self._done(SystemState.SCHEMA_INCOMPLETE, probes, report)

        if not federation.ok:
            return self._done(SystemState.BRIDGE_UNAUTHORIZED, probes, report, culprit=federation)

        access_token = _access_token(federation)
        if access_token is None:
            return self._done(SystemState.BRIDGE_UNAUTHORIZED, probes, report, culprit=federation)

        bridge = await self._probes.bridge(access_token)
        probes.append(bridge)
        if not bridge.ok:
            return self._done(SystemState.BRIDGE_UNAUTHORIZED, probes, report, culprit=bridge)

        if report is None:
            state = (
                SystemState.BRIDGE_UNAUTHORIZED
                if status.code in _JWT_CODES
                else SystemState.SCHEMA_INCOMPLETE
            )
            return self._done(state, probes, report, culprit=status)

        return self._done(SystemState.READY, probes, report)

    @staticmethod
    def _done(
        state: SystemState,
        probes: list[ProbeResult],
        report: ReadinessReport | None = None,
        *,
        culprit: ProbeResult | None = None,
        fallback: str = "",
    ) -> Diagnosis:
        explanation = None
        if culprit is not None:
            explanation = explain(_failure_text(culprit) or fallback)
        logger.info("Diagnosis: {}", state.value)
        return Diagnosis(state=state, probes=probes, report=report, explanation=explanation)


def _access_token(probe: ProbeResult) -> str | None:
    if not isinstance(probe.body, dict):
        return None
    session = probe.body.get("session")
    if isinstance(session, dict) and isinstance(session.get("access_token"), str):
        return session["access_token"]
    return None


class FixOutcome(BaseModel):
    diagnosis: Diagnosis
    attempts: int = 0
    actions: list[str] = Field(default_factory=list)


class AutoFixer:
    """Repairs fixable states a bounded number of times.

    Terminal states are reported as-is and never retried.
    """

    def __init__(self, engine: DiagnosticsEngine, probes: ProbeClient, max_attempts: int = 1):
        self._engine = engine
        self._probes = probes
        self._max_attempts = max_attempts

    async def run(self, diagnosis: Diagnosis | None = None) -> FixOutcome:
        current = diagnosis or await self._engine.diagnose()
        attempts = 0
        actions: list[str] = []

        while current.state.fixable and attempts < self._max_attempts:
            attempts += 1
            if current.state in (SystemState.RPC_MISSING, SystemState.SCHEMA_INCOMPLETE):
                result = await self._probes.run_bootstrap()
                actions.append(
                    f"bootstrap: {'ok' if result.ok else result.code or result.detail}"
                )
            else:
                actions.append("re-federate")
            current = await self._engine.diagnose()

        if not current.ready:
            logger.warning("System not ready after {} fix attempt(s): {}", attempts, current.state.value)
        return FixOutcome(diagnosis=current, attempts=attempts, actions=actions)
