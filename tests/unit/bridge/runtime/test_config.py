"""Config template loading and context overrides."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from src.bridge.runtime.config.config_data import (
    ConfigData,
    FederationConfig,
    PlatformConfig,
    RedisConfig,
)
from src.bridge.runtime.config.config_template import load_templated_yaml, substitute_env_vars
from src.bridge.runtime.context import get_config, with_context
from src.bridge.runtime.settings import EnvironmentVariables

REPO_CONFIG = Path(__file__).resolve().parents[4] / "config.yaml"


class TestSubstituteEnvVars:
    def test_default_used_when_unset(self):
        with patch.dict(os.environ, {}, clear=True):
            assert substitute_env_vars("${MISSING_VAR:-fallback}") == "fallback"

    def test_value_wins_over_default(self):
        with patch.dict(os.environ, {"PRESENT_VAR": "actual"}):
            assert substitute_env_vars("${PRESENT_VAR:-fallback}") == "actual"

    def test_required_missing(self):
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ValueError, match="MISSING_VAR"):
                substitute_env_vars("${MISSING_VAR}")

    def test_required_with_message(self):
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ValueError, match="set me"):
                substitute_env_vars("${MISSING_VAR:?set me}")


class TestLoadTemplatedYaml:
    def test_repo_config_with_bridge_variables(self):
        env = {
            "CLERK_JWT_ISSUER": "https://clerk.example.com",
            "CLERK_EXPECTED_AUDIENCE": "my-app",
            "SUPABASE_URL": "https://abc.supabase.co",
            "SUPABASE_SERVICE_ROLE_KEY": "service-key",
            "SUPABASE_JWT_SECRET": "jwt-secret",
        }
        with patch.dict(os.environ, env, clear=True):
            config = load_templated_yaml(REPO_CONFIG)

        assert config.federation.issuer == "https://clerk.example.com"
        assert config.federation.jwks_endpoint == (
            "https://clerk.example.com/.well-known/jwks.json"
        )
        assert config.platform.token_ttl_seconds == 3600
        assert config.platform.installer_backend == "rpc"
        assert config.rate_limiter.requests == 10
        assert config.rate_limiter.window_ms == 60000
        assert config.missing_federation_settings() == []

    def test_empty_values_fall_back_to_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            config = load_templated_yaml(REPO_CONFIG)

        assert config.federation.issuer is None
        assert config.redis.password is None
        assert config.logging.file is None
        assert config.missing_federation_settings() == [
            "SUPABASE_URL",
            "SUPABASE_SERVICE_ROLE_KEY",
            "CLERK_JWT_ISSUER",
            "CLERK_EXPECTED_AUDIENCE",
            "SUPABASE_JWT_SECRET",
        ]

    def test_environment_prefixed_override(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("config:\n  federation:\n    audience: ${CLERK_EXPECTED_AUDIENCE:-}\n")
        env = {"APP_ENVIRONMENT": "production", "PRODUCTION_CLERK_EXPECTED_AUDIENCE": "prod-app"}
        with patch.dict(os.environ, env, clear=True):
            config = load_templated_yaml(path)
        assert config.federation.audience == "prod-app"

    def test_invalid_config(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("config:\n  platform:\n    installer_backend: carrier-pigeon\n")
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ValueError, match="Invalid configuration"):
                load_templated_yaml(path)


class TestConfigModels:
    def test_signing_secret_only_needed_for_minting(self):
        config = ConfigData(
            federation=FederationConfig(issuer="https://i", audience="a"),
            platform=PlatformConfig(url="https://p", service_role_key="k"),
        )
        assert config.missing_federation_settings() == ["SUPABASE_JWT_SECRET"]
        assert config.missing_federation_settings(minting=False) == []

    def test_explicit_jwks_url(self):
        federation = FederationConfig(issuer="https://i/", jwks_url="https://keys.example/jwks")
        assert federation.jwks_endpoint == "https://keys.example/jwks"

    def test_redis_connection_string_with_password(self):
        redis = RedisConfig(url="redis://cache:6379/0", password="pw")
        assert redis.connection_string == "redis://:pw@cache:6379/0"


class TestWithContext:
    def test_partial_override_keeps_other_values(self):
        before = get_config()
        override = ConfigData(platform=PlatformConfig(token_ttl_seconds=60))
        with with_context(override):
            config = get_config()
            assert config.platform.token_ttl_seconds == 60
            assert config.platform.token_audience == before.platform.token_audience
            assert config.rate_limiter == before.rate_limiter
        assert get_config().platform.token_ttl_seconds == before.platform.token_ttl_seconds

    def test_nested_overrides(self):
        with with_context(ConfigData(federation=FederationConfig(audience="outer"))):
            with with_context(ConfigData(federation=FederationConfig(issuer="https://inner"))):
                config = get_config()
                assert config.federation.audience == "outer"
                assert config.federation.issuer == "https://inner"
            assert get_config().federation.issuer != "https://inner"

    def test_attribute_assignment_counts_as_override(self):
        override = ConfigData()
        override.platform.token_cache_ttl_seconds = 0
        with with_context(override):
            assert get_config().platform.token_cache_ttl_seconds == 0

    def test_none_is_noop(self):
        before = get_config()
        with with_context(None):
            assert get_config() is before

    def test_rejects_other_types(self):
        with pytest.raises(ValueError):
            with with_context({"platform": {}}):
                pass


def test_operator_settings_secret_values():
    env = {
        "SUPABASE_SERVICE_ROLE_KEY": "svc",
        "SUPABASE_DB_URL": "postgresql://u:p@h/db",
        "CLERK_TEST_JWT": "tok",
    }
    with patch.dict(os.environ, env, clear=True):
        settings = EnvironmentVariables(_env_file=None)
    assert set(settings.secret_values) == {"svc", "postgresql://u:p@h/db", "tok"}
    assert settings.bridge_url is None
