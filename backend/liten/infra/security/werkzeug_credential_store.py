# liten/infra/security/werkzeug_credential_store.py
from __future__ import annotations

import logging
from dataclasses import dataclass

from werkzeug.security import check_password_hash, generate_password_hash

from liten.services._shared.ports import CredentialStore

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class WerkzeugCredentialStore(CredentialStore):
    """
    Salted password hashing backed by :mod:`werkzeug.security`.

    :param method: Werkzeug method spec, e.g. ``"scrypt"`` or
        ``"pbkdf2:sha256:600000"``.
    :param salt_length: Salt length in characters.
    """

    method: str = "scrypt"
    salt_length: int = 16

    def hash(self, plaintext: str) -> str:
        return generate_password_hash(plaintext, method=self.method, salt_length=self.salt_length)

    def verify(self, plaintext: str, hashed: str | None) -> bool:
        if not hashed:
            return False
        try:
            # ``check_password_hash`` compares digests with ``hmac.compare_digest``
            return bool(check_password_hash(hashed, plaintext))
        except (ValueError, TypeError):
            log.warning("credentials.malformed_hash")
            return False
