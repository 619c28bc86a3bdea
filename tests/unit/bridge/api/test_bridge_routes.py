"""HTTP contract of the federation, bootstrap and health endpoints."""

from authlib.jose import jwt

from src.bridge.core.errors import ErrorCode, FederationError
from src.bridge.core.models.bootstrap import InstallResult
from src.bridge.core.services.identity.mapper import map_external_id


def _federate(bridge, token: str):
    return bridge.client.post("/federate", json={"externalToken": token})


class TestFederateEndpoint:
    def test_round_trip(self, bridge, token_factory, platform_secret):
        response = _federate(bridge, token_factory())

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["session"]["refresh_token"] is None

        claims = jwt.decode(body["session"]["access_token"], platform_secret)
        claims.validate()
        assert claims["sub"] == map_external_id("user_test_123")
        assert claims["aud"] == "authenticated"
        assert claims["role"] == "authenticated"
        assert claims["exp"] > claims["iat"]

    def test_response_headers(self, bridge, token_factory):
        response = _federate(bridge, token_factory())
        assert response.headers["cache-control"] == "no-store"
        assert response.headers["access-control-allow-origin"] == "*"
        assert "x-request-id" in response.headers

    def test_same_subject_same_identity(self, bridge, token_factory, platform_secret, fake_platform):
        first = _federate(bridge, token_factory()).json()
        second = _federate(bridge, token_factory()).json()

        sub_1 = jwt.decode(first["session"]["access_token"], platform_secret)["sub"]
        sub_2 = jwt.decode(second["session"]["access_token"], platform_secret)["sub"]
        assert sub_1 == sub_2
        assert len(fake_platform.created_users()) == 1

    def test_wrong_audience(self, bridge, token_factory, fake_platform):
        response = _federate(bridge, token_factory(audience="another-app"))

        assert response.status_code == 401
        assert response.json() == {
            "success": False,
            "code": "jwt_audience_invalid",
            "error": "Invalid token",
        }
        assert fake_platform.requests == []

    def test_wrong_issuer(self, bridge, token_factory):
        response = _federate(bridge, token_factory(issuer="https://evil.example"))
        assert response.status_code == 401
        assert response.json()["code"] == "jwt_issuer_invalid"

    def test_garbage_token(self, bridge):
        response = _federate(bridge, "not-a-token")
        assert response.status_code == 401
        assert response.json()["code"] == "jwt_invalid"

    def test_body_not_json(self, bridge):
        response = bridge.client.post(
            "/federate", content=b"{oops", headers={"content-type": "application/json"}
        )
        assert response.status_code == 400
        assert response.json()["code"] == "invalid_body"

    def test_missing_token(self, bridge):
        for payload in ({}, {"externalToken": ""}, {"externalToken": 42}):
            response = bridge.client.post("/federate", json=payload)
            assert response.status_code == 400
            assert response.json() == {
                "success": False,
                "code": "invalid_body",
                "error": "externalToken is required",
            }

    def test_blank_token(self, bridge, fake_platform):
        for token in ("   ", "\n\t"):
            response = bridge.client.post("/federate", json={"externalToken": token})
            assert response.status_code == 400
            assert response.json()["code"] == "invalid_body"
        assert fake_platform.requests == []

    def test_env_missing(self, bridge, bridge_config, token_factory):
        bridge_config.platform.jwt_secret = ""
        response = _federate(bridge, token_factory())

        assert response.status_code == 500
        body = response.json()
        assert body["code"] == "env_missing"
        assert "SUPABASE_JWT_SECRET" in body["error"]

    def test_rate_limited(self, bridge, bridge_config):
        bridge_config.rate_limiter.requests = 2
        statuses = [
            bridge.client.post("/federate", json={}).status_code for _ in range(3)
        ]

        assert statuses == [400, 400, 429]
        response = bridge.client.post("/federate", json={})
        assert response.json()["code"] == "rate_limited"
        assert int(response.headers["retry-after"]) > 0

    def test_rate_limit_disabled(self, bridge, bridge_config):
        bridge_config.rate_limiter.requests = 1
        bridge_config.rate_limiter.enabled = False
        statuses = {bridge.client.post("/federate", json={}).status_code for _ in range(3)}
        assert statuses == {400}

    def test_preflight(self, bridge):
        response = bridge.client.options("/federate")
        assert response.status_code == 200
        assert response.text == "ok"
        assert response.headers["access-control-allow-origin"] == "*"
        assert "content-type" in response.headers["access-control-allow-headers"]

    def test_wrong_method(self, bridge):
        response = bridge.client.get("/federate")
        assert response.status_code == 405
        assert response.json()["code"] == "invalid_body"

    def test_provisioning_failure(self, bridge, token_factory, fake_platform):
        fake_platform.create_status = 500
        response = _federate(bridge, token_factory())
        assert response.status_code == 500
        assert response.json()["code"] == "user_create_failed"


class TestBootstrapEndpoints:
    def test_bootstrap(self, bridge, token_factory, fake_schema_backend):
        response = bridge.client.post("/bootstrap", json={"externalToken": token_factory()})
        assert response.status_code == 200
        assert response.json() == {"success": True, "bootstrapped": True}
        assert fake_schema_backend.install_calls == 1

    def test_already_initialized(self, bridge, token_factory, fake_schema_backend):
        fake_schema_backend.result = InstallResult(already_initialized=True)
        response = bridge.client.post("/bootstrap", json={"externalToken": token_factory()})
        assert response.json() == {"success": True, "already_initialized": True}

    def test_requires_valid_token(self, bridge, token_factory, fake_schema_backend):
        response = bridge.client.post(
            "/bootstrap", json={"externalToken": token_factory(audience="nope")}
        )
        assert response.status_code == 401
        assert fake_schema_backend.install_calls == 0

    def test_does_not_need_signing_secret(self, bridge, bridge_config, token_factory):
        bridge_config.platform.jwt_secret = ""
        response = bridge.client.post("/bootstrap", json={"externalToken": token_factory()})
        assert response.status_code == 200

    def test_rpc_missing(self, bridge, token_factory, fake_schema_backend):
        fake_schema_backend.error = FederationError(
            ErrorCode.BOOTSTRAP_RPC_MISSING, "bootstrap_install() is not installed"
        )
        response = bridge.client.post("/bootstrap", json={"externalToken": token_factory()})
        assert response.status_code == 500
        assert response.json()["code"] == "bootstrap_rpc_missing"

    def test_unexpected_error_is_internal(self, bridge, token_factory, fake_schema_backend):
        fake_schema_backend.error = RuntimeError("password=hunter2 leaked")
        response = bridge.client.post("/bootstrap", json={"externalToken": token_factory()})
        assert response.status_code == 500
        assert response.json() == {
            "success": False,
            "code": "internal_error",
            "error": "Internal server error",
        }
        assert "hunter2" not in response.text

    def test_status(self, bridge, token_factory, fake_schema_backend):
        response = bridge.client.post(
            "/bootstrap/status", json={"externalToken": token_factory()}
        )
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["status"]["ready"] is True
        assert body["status"]["policies"] == {"projects": 4, "profiles": 4}
        assert fake_schema_backend.install_calls == 0

    def test_preflight(self, bridge):
        for path in ("/bootstrap", "/bootstrap/status"):
            response = bridge.client.options(path)
            assert response.status_code == 200
            assert response.text == "ok"


class TestHealthEndpoints:
    def test_liveness(self, bridge):
        response = bridge.client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "service": "rls-bridge"}

    def test_readiness(self, bridge):
        response = bridge.client.get("/health/ready")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ready"
        assert body["checks"]["jwks"]["status"] == "healthy"
        assert body["checks"]["schema"]["status"] == "ready"

    def test_not_ready_without_settings(self, bridge, bridge_config):
        bridge_config.platform.service_role_key = ""
        response = bridge.client.get("/health/ready")
        assert response.status_code == 503
        assert "SUPABASE_SERVICE_ROLE_KEY" in response.json()["checks"]["config"]["missing"]
