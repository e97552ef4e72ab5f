"""
liten.services._shared.ports
============================

*Ports* (hexagonal interfaces) for credential, token and session-state
infrastructure. They keep the service layer independent from PyJWT, werkzeug,
SQLAlchemy and Redis.

Modules
-------
- :mod:`credential_store`:
    :class:`~.CredentialStore` for one-way password hashing.

- :mod:`token_issuer`:
    :class:`~.TokenIssuer` for minting and verifying signed tokens.

- :mod:`refresh_token_ledger`:
    :class:`~.RefreshTokenLedger`, :class:`~.RotationResult`,
    :class:`~.RotationOutcome` and :class:`~.SessionTokenView` for the
    authoritative session-token state.

Concrete adapters live under ``liten.infra``; in-memory doubles live beside
the ports for unit tests.
"""

from __future__ import annotations

from .credential_store import CredentialStore, PlainCredentialStore
from .refresh_token_ledger import (
    InMemoryRefreshTokenLedger,
    RefreshTokenLedger,
    RotationOutcome,
    RotationResult,
    SessionTokenView,
)
from .token_issuer import TokenIdentity, TokenIssuer, TokenType

__all__ = [
    "CredentialStore",
    "PlainCredentialStore",
    "TokenIssuer",
    "TokenIdentity",
    "TokenType",
    "RefreshTokenLedger",
    "RotationResult",
    "RotationOutcome",
    "SessionTokenView",
    "InMemoryRefreshTokenLedger",
]
