# liten/infra/jwt/pyjwt_token_issuer.py
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import uuid4

import jwt

from liten.services._shared.errors import TokenError, TokenFailure
from liten.services._shared.ports import TokenIdentity, TokenIssuer, TokenType

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"
REQUIRED_CLAIMS = ("sub", "exp", "iat", "jti", "type")


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class SigningKey:
    """
    Symmetric signing material, built once at startup.

    :param secret: Shared secret (``JWT_SECRET_KEY``).
    :param algorithm: JWS algorithm, ``HS256`` by default.
    """

    secret: str
    algorithm: str = "HS256"

    def __repr__(self) -> str:
        return f"SigningKey(algorithm={self.algorithm!r})"


@dataclass(slots=True)
class JWTTokenIssuer(TokenIssuer):
    """
    PyJWT adapter minting tokens compatible with ``flask-jwt-extended``.

    Claims: ``sub`` (email), ``uid``, ``iat``, ``nbf``, ``exp``, ``jti``,
    ``type`` and ``fresh``. The random ``jti`` makes every token string
    unique even when two are minted in the same second.

    .. note::
       The issuer never reads Flask config; callers pass the key explicitly.
    """

    key: SigningKey
    access_ttl: timedelta = timedelta(hours=24)
    refresh_ttl: timedelta = timedelta(days=7)
    clock: Callable[[], datetime] = field(default=_utcnow)

    # -------------------- minting --------------------

    def _mint(
        self, identity: TokenIdentity, *, token_type: TokenType, ttl: timedelta, fresh: bool
    ) -> str:
        now = self.clock()
        payload: dict[str, Any] = {
            "sub": identity.email,
            "uid": identity.user_id,
            "iat": now,
            "nbf": now,
            "exp": now + ttl,
            "jti": uuid4().hex,
            "type": token_type,
            "fresh": fresh,
        }
        return jwt.encode(payload, self.key.secret, algorithm=self.key.algorithm)

    def mint_access(self, identity: TokenIdentity, *, fresh: bool = False) -> str:
        return self._mint(identity, token_type=ACCESS_TOKEN_TYPE, ttl=self.access_ttl, fresh=fresh)

    def mint_refresh(self, identity: TokenIdentity) -> str:
        return self._mint(
            identity, token_type=REFRESH_TOKEN_TYPE, ttl=self.refresh_ttl, fresh=False
        )

    # -------------------- checking --------------------

    def verify(self, token: str, *, expected_type: TokenType | None = None) -> dict[str, Any]:
        """
        Decode ``token`` checking signature, required claims and expiry.

        :param token: Encoded JWT.
        :param expected_type: Reject tokens whose ``type`` claim differs.
        :returns: Decoded claims.
        :raises TokenError: ``EXPIRED`` when ``exp`` lapsed, ``INVALID`` otherwise.
        """
        try:
            claims: dict[str, Any] = jwt.decode(
                token,
                self.key.secret,
                algorithms=[self.key.algorithm],
                options={
                    "require": list(REQUIRED_CLAIMS),
                    # Time claims are judged against the injected clock below
                    "verify_exp": False,
                    "verify_nbf": False,
                    "verify_iat": False,
                },
            )
        except jwt.InvalidTokenError as exc:
            raise TokenError(TokenFailure.INVALID, str(exc)) from exc

        now_ts = self.clock().timestamp()
        if float(claims["exp"]) <= now_ts:
            raise TokenError(TokenFailure.EXPIRED)
        if float(claims.get("nbf", 0)) > now_ts:
            raise TokenError(TokenFailure.INVALID, "token not yet valid")
        if expected_type is not None and claims.get("type") != expected_type:
            raise TokenError(TokenFailure.INVALID, f"expected a {expected_type} token")
        return claims

    def extract_subject(self, token: str) -> str:
        try:
            claims = jwt.decode(token, options={"verify_signature": False, "verify_exp": False})
        except jwt.InvalidTokenError as exc:
            raise TokenError(TokenFailure.INVALID, str(exc)) from exc
        subject = claims.get("sub")
        if not isinstance(subject, str) or not subject:
            raise TokenError(TokenFailure.INVALID, "missing subject")
        return subject
