"""Layered diagnosis against a scripted platform and bridge."""

import pytest

from src.bridge.core.services.diagnostics import AutoFixer, SystemState
from tests.fixtures.dummies import FakeSystem
from tests.fixtures.dummies import scripted_engine as make_engine


class TestDiagnosticsEngine:
    async def test_ready(self):
        engine, _ = make_engine(FakeSystem())
        diagnosis = await engine.diagnose()

        assert diagnosis.state is SystemState.READY
        assert diagnosis.ready
        assert [p.name for p in diagnosis.probes] == [
            "host", "federation", "bootstrap", "status", "bridge",
        ]
        assert diagnosis.report is not None and diagnosis.report.ready

    async def test_host_unreachable(self):
        engine, _ = make_engine(FakeSystem(platform_up=False))
        diagnosis = await engine.diagnose()

        assert diagnosis.state is SystemState.HOST_UNREACHABLE
        assert [p.name for p in diagnosis.probes] == ["host"]
        assert diagnosis.explanation.code == "platform_unreachable"

    async def test_host_timeout(self):
        engine, _ = make_engine(FakeSystem(platform_slow=True))
        diagnosis = await engine.diagnose()

        assert diagnosis.state is SystemState.HOST_UNREACHABLE
        assert diagnosis.probe("host").timed_out

    async def test_edge_not_deployed(self):
        engine, _ = make_engine(FakeSystem(edge_deployed=False))
        diagnosis = await engine.diagnose()

        assert diagnosis.state is SystemState.EDGE_NOT_DEPLOYED
        assert diagnosis.explanation.code == "edge_not_deployed"

    async def test_edge_not_deployed_skips_bootstrap_call(self):
        engine, _ = make_engine(FakeSystem(edge_deployed=False))
        diagnosis = await engine.diagnose()

        assert [p.name for p in diagnosis.probes] == ["host", "federation", "status"]
        assert diagnosis.probe("bootstrap") is None

    async def test_rpc_missing(self):
        engine, _ = make_engine(FakeSystem(rpc_installed=False))
        diagnosis = await engine.diagnose()

        assert diagnosis.state is SystemState.RPC_MISSING
        assert diagnosis.explanation.code == "rpc_missing"

    async def test_schema_incomplete(self):
        engine, _ = make_engine(FakeSystem(schema_ready=False))
        diagnosis = await engine.diagnose()

        assert diagnosis.state is SystemState.SCHEMA_INCOMPLETE
        assert "table projects" in diagnosis.report.missing()

    async def test_invalid_external_token(self):
        engine, _ = make_engine(FakeSystem(token_valid=False))
        diagnosis = await engine.diagnose()
        assert diagnosis.state is SystemState.BRIDGE_UNAUTHORIZED

    async def test_no_external_token(self):
        engine, _ = make_engine(FakeSystem(), token=None)
        diagnosis = await engine.diagnose()
        assert diagnosis.state is SystemState.BRIDGE_UNAUTHORIZED

    async def test_minted_token_rejected_by_platform(self):
        engine, _ = make_engine(FakeSystem(minted_accepted=False))
        diagnosis = await engine.diagnose()

        assert diagnosis.state is SystemState.BRIDGE_UNAUTHORIZED
        assert diagnosis.explanation.code == "jwt_signature_mismatch"


class TestAutoFixer:
    async def test_repairs_incomplete_schema(self):
        engine, probes = make_engine(FakeSystem(schema_ready=False))
        outcome = await AutoFixer(engine, probes).run()

        assert outcome.diagnosis.state is SystemState.READY
        assert outcome.attempts == 1
        assert outcome.actions == ["bootstrap: ok"]

    async def test_gives_up_after_max_attempts(self):
        engine, probes = make_engine(FakeSystem(rpc_installed=False))
        outcome = await AutoFixer(engine, probes, max_attempts=2).run()

        assert outcome.diagnosis.state is SystemState.RPC_MISSING
        assert outcome.attempts == 2
        assert outcome.actions == ["bootstrap: bootstrap_rpc_missing"] * 2

    async def test_terminal_states_not_retried(self):
        engine, probes = make_engine(FakeSystem(platform_up=False))
        outcome = await AutoFixer(engine, probes, max_attempts=3).run()

        assert outcome.diagnosis.state is SystemState.HOST_UNREACHABLE
        assert outcome.attempts == 0
        assert outcome.actions == []

    async def test_starts_from_given_diagnosis(self):
        engine, probes = make_engine(FakeSystem())
        ready = await engine.diagnose()
        outcome = await AutoFixer(engine, probes).run(ready)
        assert outcome.attempts == 0
        assert outcome.diagnosis.state is SystemState.READY


@pytest.mark.parametrize(
    "state,fixable",
    [
        (SystemState.HOST_UNREACHABLE, False),
        (SystemState.EDGE_NOT_DEPLOYED, False),
        (SystemState.RPC_MISSING, True),
        (SystemState.SCHEMA_INCOMPLETE, True),
        (SystemState.BRIDGE_UNAUTHORIZED, True),
        (SystemState.READY, False),
    ],
)
def test_fixable_states(state, fixable):
    assert state.fixable is fixable
    assert state.instructions
