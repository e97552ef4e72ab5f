"""Explicit construction of the authentication collaborators.

The credential store, token issuer and refresh-token ledger are built once per
application from configuration and stored in ``app.extensions``. Services
receive them as constructor arguments; nothing reads them from a global.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

from flask import Flask, current_app

from liten.core.config import validate_signing_secret
from liten.core.extensions import get_redis
from liten.infra.jwt.pyjwt_token_issuer import JWTTokenIssuer, SigningKey
from liten.infra.redis.redis_refresh_token_ledger import RedisRefreshTokenLedger
from liten.infra.security.werkzeug_credential_store import WerkzeugCredentialStore
from liten.infra.sqlalchemy.sql_refresh_token_ledger import SQLRefreshTokenLedger
from liten.services._shared.ports import CredentialStore, RefreshTokenLedger, TokenIssuer

log = logging.getLogger(__name__)

EXTENSION_KEY = "liten.auth"


@dataclass(frozen=True, slots=True)
class AuthComponents:
    """
    Process-wide authentication collaborators.

    :param signing_key: Immutable signing material shared by every worker thread.
    :param credential_store: Password hashing adapter.
    :param token_issuer: JWT minting/verification adapter.
    :param ledger: Authoritative refresh-token state.
    """

    signing_key: SigningKey
    credential_store: CredentialStore
    token_issuer: TokenIssuer
    ledger: RefreshTokenLedger


def build_ledger(app: Flask, refresh_ttl: timedelta) -> RefreshTokenLedger:
    """Instantiate the ledger selected by ``REFRESH_LEDGER_BACKEND``.

    :raises ValueError: For an unknown backend name.
    """
    backend = str(app.config.get("REFRESH_LEDGER_BACKEND", "sql")).strip().lower()
    if backend == "sql":
        return SQLRefreshTokenLedger(refresh_ttl=refresh_ttl)
    if backend == "redis":
        return RedisRefreshTokenLedger(r=get_redis(), refresh_ttl=refresh_ttl)
    raise ValueError(f"Unknown REFRESH_LEDGER_BACKEND {backend!r} (expected 'sql' or 'redis').")


def build_components(app: Flask) -> AuthComponents:
    """Read configuration once and assemble :class:`AuthComponents`."""
    secret = app.config.get("JWT_SECRET_KEY")
    if app.config.get("ENFORCE_STRONG_SECRETS"):
        try:
            validate_signing_secret(secret)
        except ValueError as exc:
            raise RuntimeError(f"Refusing to start: {exc}") from exc

    key = SigningKey(secret=str(secret), algorithm=app.config.get("JWT_ALGORITHM", "HS256"))
    access_ttl = timedelta(seconds=int(app.config.get("ACCESS_TOKEN_TTL_SECONDS", 86400)))
    refresh_ttl = timedelta(days=int(app.config.get("REFRESH_TOKEN_TTL_DAYS", 7)))

    return AuthComponents(
        signing_key=key,
        credential_store=WerkzeugCredentialStore(
            method=app.config.get("PASSWORD_HASH_METHOD", "scrypt")
        ),
        token_issuer=JWTTokenIssuer(key=key, access_ttl=access_ttl, refresh_ttl=refresh_ttl),
        ledger=build_ledger(app, refresh_ttl),
    )


def init_app(app: Flask) -> None:
    """Build the components and register them on ``app.extensions``."""
    components = build_components(app)
    app.extensions[EXTENSION_KEY] = components
    log.info(
        "Auth components ready",
        extra={"event": "auth.wiring", "backend": type(components.ledger).__name__},
    )


def get_components() -> AuthComponents:
    """Return the components of the current application."""
    try:
        return current_app.extensions[EXTENSION_KEY]
    except KeyError as exc:
        raise RuntimeError("Auth components are not initialized. Call init_app().") from exc
