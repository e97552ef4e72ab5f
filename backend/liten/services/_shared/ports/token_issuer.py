from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Literal, Protocol

TokenType = Literal["access", "refresh"]


@dataclass(frozen=True, slots=True)
class TokenIdentity:
    """
    Minimal identity projection embedded in token claims.

    :param user_id: Numeric user id (``uid`` claim).
    :type user_id: int
    :param email: Normalized email (``sub`` claim).
    :type email: str
    """

    user_id: int
    email: str


class TokenIssuer(Protocol):
    """Port for minting and checking signed access/refresh tokens."""

    @property
    def access_ttl(self) -> timedelta: ...

    @property
    def refresh_ttl(self) -> timedelta: ...

    def mint_access(self, identity: TokenIdentity, *, fresh: bool = False) -> str:
        """Return a signed access token for ``identity``."""
        ...

    def mint_refresh(self, identity: TokenIdentity) -> str:
        """Return a signed refresh token for ``identity``."""
        ...

    def verify(self, token: str, *, expected_type: TokenType | None = None) -> dict[str, Any]:
        """
        Check signature, structure and expiry and return the claims.

        :raises TokenError: ``INVALID`` on a bad signature, a malformed token
            or a type mismatch; ``EXPIRED`` when ``exp`` has passed.
        """
        ...

    def extract_subject(self, token: str) -> str:
        """
        Read the ``sub`` claim without checking the signature or expiry.

        :raises TokenError: ``INVALID`` when the token cannot be parsed.
        """
        ...
