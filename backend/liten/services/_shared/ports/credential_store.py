from __future__ import annotations

from typing import Protocol


class CredentialStore(Protocol):
    """Port for one-way password hashing and verification."""

    def hash(self, plaintext: str) -> str:
        """Return a salted one-way hash of ``plaintext``."""
        ...

    def verify(self, plaintext: str, hashed: str | None) -> bool:
        """
        Compare ``plaintext`` with a stored hash in constant time.

        Implementations MUST return ``False`` (never raise) when ``hashed`` is
        empty, ``None`` or not a recognisable hash.
        """
        ...


class PlainCredentialStore(CredentialStore):
    """Reversible test double: hashes are ``plain$<value>``."""

    PREFIX = "plain$"

    def hash(self, plaintext: str) -> str:
        return f"{self.PREFIX}{plaintext}"

    def verify(self, plaintext: str, hashed: str | None) -> bool:
        if not hashed or not hashed.startswith(self.PREFIX):
            return False
        return hashed[len(self.PREFIX) :] == plaintext
