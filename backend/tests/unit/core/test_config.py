"""Tests for configuration helpers and the auth wiring."""

from __future__ import annotations

from datetime import timedelta

import fakeredis
import pytest

from liten.core import extensions
from liten.core.config import (
    CONFIG_MAP,
    DevelopmentConfig,
    ProductionConfig,
    env_bool,
    env_int,
    get_config,
    validate_signing_secret,
)
from liten.core.wiring import build_components, build_ledger
from liten.factory import create_app
from liten.infra.redis.redis_refresh_token_ledger import RedisRefreshTokenLedger
from liten.infra.sqlalchemy.sql_refresh_token_ledger import SQLRefreshTokenLedger


class TestEnvParsing:
    @pytest.mark.parametrize("raw", ["1", "true", "YES", " on "])
    def test_truthy_values(self, monkeypatch, raw):
        monkeypatch.setenv("LITEN_FLAG", raw)
        assert env_bool("LITEN_FLAG") is True

    def test_missing_flag_uses_default(self, monkeypatch):
        monkeypatch.delenv("LITEN_FLAG", raising=False)
        assert env_bool("LITEN_FLAG", default=True) is True

    def test_env_int(self, monkeypatch):
        monkeypatch.setenv("LITEN_TTL", "3600")
        assert env_int("LITEN_TTL", 1) == 3600
        monkeypatch.setenv("LITEN_TTL", "  ")
        assert env_int("LITEN_TTL", 1) == 1


class TestSelection:
    def test_app_env_selects_class(self, monkeypatch):
        monkeypatch.setenv("APP_ENV", "Production")
        assert get_config() is ProductionConfig

    def test_unknown_env_falls_back_to_development(self, monkeypatch):
        monkeypatch.setenv("APP_ENV", "staging")
        assert get_config() is DevelopmentConfig

    def test_map_is_complete(self):
        assert set(CONFIG_MAP) == {"development", "testing", "production"}


class TestSigningSecret:
    @pytest.mark.parametrize("value", [None, "", "CHANGE_ME_JWT", "secret", "short-but-real"])
    def test_weak_secrets_are_refused(self, value):
        with pytest.raises(ValueError):
            validate_signing_secret(value)

    def test_strong_secret_passes(self):
        secret = "k" * 48
        assert validate_signing_secret(secret) == secret


class _WeakProduction(ProductionConfig):
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    JWT_SECRET_KEY = "CHANGE_ME_JWT"
    REDIS_URL = ""


class TestWiring:
    def test_production_refuses_placeholder_secret(self):
        with pytest.raises(RuntimeError, match="Refusing to start"):
            create_app(_WeakProduction)

    def test_sql_backend_by_default(self, app):
        components = build_components(app)
        assert isinstance(components.ledger, SQLRefreshTokenLedger)
        assert components.token_issuer.access_ttl.total_seconds() == 86400
        assert components.ledger.refresh_ttl.days == 7

    def test_redis_backend(self, app, monkeypatch):
        monkeypatch.setattr(extensions, "redis_client", fakeredis.FakeRedis())
        monkeypatch.setitem(app.config, "REFRESH_LEDGER_BACKEND", "redis")

        ledger = build_ledger(app, timedelta(days=7))
        assert isinstance(ledger, RedisRefreshTokenLedger)

    def test_unknown_backend(self, app, monkeypatch):
        monkeypatch.setitem(app.config, "REFRESH_LEDGER_BACKEND", "mongo")
        with pytest.raises(ValueError):
            build_components(app)

    def test_signing_key_hides_secret(self, components):
        assert "testing-signing-key" not in repr(components.signing_key)
