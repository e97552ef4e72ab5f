from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import UTC, datetime, timedelta
from enum import Enum, auto
from typing import Protocol

DEFAULT_REFRESH_TTL = timedelta(days=7)


def utcnow() -> datetime:
    return datetime.now(UTC)


class RotationResult(Enum):
    """Outcome of an atomic refresh rotation attempt."""

    OK = auto()
    NOT_FOUND = auto()
    EXPIRED = auto()
    REVOKED = auto()


@dataclass(frozen=True, slots=True)
class SessionTokenView:
    """
    Read-model for a session token record.

    :ivar token: Opaque refresh token value.
    :ivar user_id: Owner identity id.
    :ivar expires_at: Absolute expiration (UTC).
    :ivar revoked: Whether the record was revoked (logout, rotation, revoke-all).
    :ivar device_info: Free-text client description.
    :ivar deleted: Whether the record carries a soft-delete marker.
    """

    token: str
    user_id: int
    expires_at: datetime
    revoked: bool
    device_info: str | None = None
    deleted: bool = False

    def is_valid(self, now: datetime) -> bool:
        """Not revoked, not soft-deleted and ``expires_at`` strictly after ``now``."""
        return not self.revoked and not self.deleted and self.expires_at > now


@dataclass(frozen=True, slots=True)
class RotationOutcome:
    """
    Result of :meth:`RefreshTokenLedger.rotate`.

    :ivar result: Classification of the attempt.
    :ivar record: The newly issued record when ``result`` is ``OK``.
    """

    result: RotationResult
    record: SessionTokenView | None = None

    @property
    def ok(self) -> bool:
        return self.result is RotationResult.OK


class RefreshTokenLedger(Protocol):
    """
    Authoritative store of session token records.

    Every write is atomic; ``rotate`` MUST revoke the old record and insert
    the new one as a single linearizable step so two concurrent rotations of
    the same value can never both succeed.
    """

    def issue(
        self, *, user_id: int, token: str, device_info: str | None = None
    ) -> SessionTokenView:
        """
        Persist a valid record expiring ``refresh_ttl`` from now.

        Afterwards, best-effort removal of the owner's expired or revoked
        records runs; its failures are logged and never propagated.
        """
        ...

    def is_valid(self, token: str) -> bool:
        """Return ``False`` for unknown, revoked, expired or deleted tokens."""
        ...

    def revoke(self, token: str) -> None:
        """Revoke one record. Idempotent; unknown tokens are ignored."""
        ...

    def revoke_all(self, user_id: int) -> int:
        """Revoke every currently-valid record of ``user_id``; return the count."""
        ...

    def rotate(
        self,
        *,
        old_token: str,
        user_id: int,
        new_token: str,
        device_info: str | None = None,
    ) -> RotationOutcome:
        """
        Atomically revoke ``old_token`` and issue ``new_token``.

        ``device_info=None`` carries the old record's device info over. A
        rejected rotation inserts nothing.
        """
        ...

    def purge_expired_before(self, cutoff: datetime) -> int:
        """
        Physically delete records with ``expires_at <= cutoff``.

        The cutoff is clamped to the current time so valid records survive.
        """
        ...

    def count_expired_before(self, cutoff: datetime) -> int:
        """Count the records :meth:`purge_expired_before` would delete."""
        ...

    def get(self, token: str) -> SessionTokenView | None:
        """Fetch a single record snapshot (if present)."""
        ...


class InMemoryRefreshTokenLedger(RefreshTokenLedger):
    """
    Process-local ledger with the same atomicity contract.

    .. note::
       Uses a threading lock to provide atomic rotation in unit tests.
    """

    def __init__(
        self,
        *,
        refresh_ttl: timedelta = DEFAULT_REFRESH_TTL,
        clock: Callable[[], datetime] = utcnow,
        cleanup_on_issue: bool = True,
    ) -> None:
        self.refresh_ttl = refresh_ttl
        self._clock = clock
        self._cleanup_on_issue = cleanup_on_issue
        self._records: dict[str, SessionTokenView] = {}
        self._lock = threading.RLock()

    # ------------------------- helpers -------------------------

    def _insert(self, *, user_id: int, token: str, device_info: str | None) -> SessionTokenView:
        if token in self._records:
            raise ValueError("Token value already recorded.")
        view = SessionTokenView(
            token=token,
            user_id=user_id,
            expires_at=self._clock() + self.refresh_ttl,
            revoked=False,
            device_info=device_info,
        )
        self._records[token] = view
        return view

    def _cleanup(self, user_id: int) -> int:
        now = self._clock()
        stale = [
            t
            for t, v in self._records.items()
            if v.user_id == user_id and not v.deleted and (v.revoked or v.expires_at <= now)
        ]
        for t in stale:
            del self._records[t]
        return len(stale)

    # -------------------------- API ----------------------------

    def issue(
        self, *, user_id: int, token: str, device_info: str | None = None
    ) -> SessionTokenView:
        with self._lock:
            view = self._insert(user_id=user_id, token=token, device_info=device_info)
            if self._cleanup_on_issue:
                self._cleanup(user_id)
            return view

    def is_valid(self, token: str) -> bool:
        with self._lock:
            view = self._records.get(token)
            return view is not None and view.is_valid(self._clock())

    def revoke(self, token: str) -> None:
        with self._lock:
            view = self._records.get(token)
            if view is not None and not view.revoked:
                self._records[token] = replace(view, revoked=True)

    def revoke_all(self, user_id: int) -> int:
        with self._lock:
            now = self._clock()
            targets = [
                t for t, v in self._records.items() if v.user_id == user_id and v.is_valid(now)
            ]
            for t in targets:
                self._records[t] = replace(self._records[t], revoked=True)
            return len(targets)

    def rotate(
        self,
        *,
        old_token: str,
        user_id: int,
        new_token: str,
        device_info: str | None = None,
    ) -> RotationOutcome:
        with self._lock:
            old = self._records.get(old_token)
            if old is None or old.user_id != user_id or old.deleted:
                return RotationOutcome(RotationResult.NOT_FOUND)
            if old.revoked:
                return RotationOutcome(RotationResult.REVOKED)
            if old.expires_at <= self._clock():
                return RotationOutcome(RotationResult.EXPIRED)

            self._records[old_token] = replace(old, revoked=True)
            new = self._insert(
                user_id=user_id,
                token=new_token,
                device_info=device_info if device_info is not None else old.device_info,
            )
            if self._cleanup_on_issue:
                self._cleanup(user_id)
            return RotationOutcome(RotationResult.OK, new)

    def purge_expired_before(self, cutoff: datetime) -> int:
        with self._lock:
            effective = min(cutoff, self._clock())
            doomed = [t for t, v in self._records.items() if v.expires_at <= effective]
            for t in doomed:
                del self._records[t]
            return len(doomed)

    def count_expired_before(self, cutoff: datetime) -> int:
        with self._lock:
            effective = min(cutoff, self._clock())
            return sum(1 for v in self._records.values() if v.expires_at <= effective)

    def get(self, token: str) -> SessionTokenView | None:
        with self._lock:
            return self._records.get(token)
