# comments in English; reST docstrings
from __future__ import annotations

import hashlib
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import redis  # type: ignore[import-untyped]

from liten.services._shared.ports.refresh_token_ledger import (
    DEFAULT_REFRESH_TTL,
    RefreshTokenLedger,
    RotationOutcome,
    RotationResult,
    SessionTokenView,
    utcnow,
)

logger = logging.getLogger(__name__)

EXPIRY_INDEX_KEY = "rt:exp"


def _b(value: bytes | None, default: str = "") -> str:
    return value.decode() if value is not None else default


@dataclass(slots=True)
class RedisRefreshTokenLedger(RefreshTokenLedger):
    """
    Redis-backed session ledger with optimistic-lock rotation.

    Layout
    ------
    * ``rt:{sha256(token)}``: hash with ``token``, ``user_id``, ``expires_at``
      (epoch seconds), ``revoked`` and ``device_info``. A Redis TTL matching
      the record expiry lets the server reclaim memory on its own.
    * ``rt:u:{user_id}``: set of the user's record digests.
    * ``rt:exp``: sorted set of digests scored by ``expires_at`` for purges.

    Validity is always judged against :attr:`clock`, never against the Redis
    TTL, so the boundary rule (``expires_at <= now`` is expired) holds.

    :param r: A Redis client (already connected).
    """

    r: redis.Redis
    refresh_ttl: timedelta = DEFAULT_REFRESH_TTL
    clock: Callable[[], datetime] = field(default=utcnow)
    cleanup_on_issue: bool = True

    # -------------------- helpers --------------------

    @staticmethod
    def _digest(token: str) -> str:
        return hashlib.sha256(token.encode()).hexdigest()

    @classmethod
    def _k(cls, token: str) -> str:
        return f"rt:{cls._digest(token)}"

    @staticmethod
    def _ku(user_id: int | str) -> str:
        return f"rt:u:{user_id}"

    def _ttl_seconds(self, expires_at: datetime) -> int:
        return max(1, int((expires_at - self.clock()).total_seconds()))

    @staticmethod
    def _view(h: dict[bytes, bytes]) -> SessionTokenView | None:
        if not h:
            return None
        device = h.get(b"device_info")
        return SessionTokenView(
            token=_b(h.get(b"token")),
            user_id=int(_b(h.get(b"user_id"), "0")),
            expires_at=datetime.fromtimestamp(float(_b(h.get(b"expires_at"), "0")), tz=UTC),
            revoked=_b(h.get(b"revoked"), "0") == "1",
            device_info=device.decode() if device else None,
        )

    def _record_mapping(
        self, *, token: str, user_id: int, expires_at: datetime, device_info: str | None
    ) -> dict[str, str]:
        return {
            "token": token,
            "user_id": str(user_id),
            "expires_at": repr(expires_at.timestamp()),
            "revoked": "0",
            "device_info": device_info or "",
        }

    def _queue_insert(
        self,
        p: redis.client.Pipeline,
        *,
        token: str,
        user_id: int,
        expires_at: datetime,
        device_info: str | None,
    ) -> None:
        key = self._k(token)
        p.hset(
            key,
            mapping=self._record_mapping(
                token=token, user_id=user_id, expires_at=expires_at, device_info=device_info
            ),
        )
        p.expire(key, self._ttl_seconds(expires_at))
        p.sadd(self._ku(user_id), self._digest(token))
        p.zadd(EXPIRY_INDEX_KEY, {self._digest(token): expires_at.timestamp()})

    # -------------------- API ------------------------

    def issue(
        self, *, user_id: int, token: str, device_info: str | None = None
    ) -> SessionTokenView:
        expires_at = self.clock() + self.refresh_ttl
        key = self._k(token)
        with self.r.pipeline() as p:
            while True:
                try:
                    p.watch(key)
                    if p.exists(key):
                        raise ValueError("Token value already recorded.")
                    p.multi()
                    self._queue_insert(
                        p,
                        token=token,
                        user_id=user_id,
                        expires_at=expires_at,
                        device_info=device_info,
                    )
                    p.execute()
                    break
                except redis.WatchError:
                    continue

        if self.cleanup_on_issue:
            self._cleanup(user_id)
        return SessionTokenView(
            token=token,
            user_id=user_id,
            expires_at=expires_at,
            revoked=False,
            device_info=device_info,
        )

    def is_valid(self, token: str) -> bool:
        view = self.get(token)
        return view is not None and view.is_valid(self.clock())

    def revoke(self, token: str) -> None:
        key = self._k(token)
        with self.r.pipeline() as p:
            while True:
                try:
                    p.watch(key)
                    if not p.exists(key):
                        return
                    p.multi()
                    p.hset(key, "revoked", "1")
                    p.execute()
                    return
                except redis.WatchError:
                    continue

    def revoke_all(self, user_id: int) -> int:
        key_u = self._ku(user_id)
        with self.r.pipeline() as p:
            while True:
                try:
                    p.watch(key_u)
                    digests = [_b(m) for m in p.smembers(key_u)]
                    keys = [f"rt:{d}" for d in digests]
                    if keys:
                        p.watch(*keys)
                    now = self.clock()
                    live: list[str] = []
                    for key in keys:
                        view = self._view(p.hgetall(key))
                        if view is not None and view.is_valid(now):
                            live.append(key)
                    p.multi()
                    for key in live:
                        p.hset(key, "revoked", "1")
                    p.execute()
                    break
                except redis.WatchError:
                    continue

        logger.info(
            "Revoked all sessions",
            extra={"event": "ledger.revoke_all", "user_id": user_id, "count": len(live)},
        )
        return len(live)

    def rotate(
        self,
        *,
        old_token: str,
        user_id: int,
        new_token: str,
        device_info: str | None = None,
    ) -> RotationOutcome:
        """
        Atomically revoke ``old_token`` and create ``new_token``.

        The old record is WATCHed; a concurrent revoke or rotation aborts the
        ``EXEC`` and the loop re-reads, so the loser observes ``REVOKED``.
        """
        k_old = self._k(old_token)
        k_new = self._k(new_token)

        with self.r.pipeline() as p:
            while True:
                try:
                    p.watch(k_old, k_new)
                    now = self.clock()
                    old = self._view(p.hgetall(k_old))
                    if old is None or old.user_id != user_id:
                        return RotationOutcome(RotationResult.NOT_FOUND)
                    if old.revoked:
                        return RotationOutcome(RotationResult.REVOKED)
                    if old.expires_at <= now:
                        return RotationOutcome(RotationResult.EXPIRED)
                    if p.exists(k_new):
                        raise ValueError("Token value already recorded.")

                    expires_at = now + self.refresh_ttl
                    carried = device_info if device_info is not None else old.device_info
                    p.multi()
                    p.hset(k_old, "revoked", "1")
                    self._queue_insert(
                        p,
                        token=new_token,
                        user_id=user_id,
                        expires_at=expires_at,
                        device_info=carried,
                    )
                    p.execute()
                    break
                except redis.WatchError:
                    continue

        if self.cleanup_on_issue:
            self._cleanup(user_id)
        return RotationOutcome(
            RotationResult.OK,
            SessionTokenView(
                token=new_token,
                user_id=user_id,
                expires_at=expires_at,
                revoked=False,
                device_info=carried,
            ),
        )

    def purge_expired_before(self, cutoff: datetime) -> int:
        effective = min(cutoff, self.clock())
        digests = [
            _b(d) for d in self.r.zrangebyscore(EXPIRY_INDEX_KEY, "-inf", effective.timestamp())
        ]
        if not digests:
            return 0

        owners = [self.r.hget(f"rt:{d}", "user_id") for d in digests]
        pipe = self.r.pipeline(transaction=True)
        for digest, owner in zip(digests, owners, strict=True):
            pipe.delete(f"rt:{digest}")
            if owner is not None:
                pipe.srem(self._ku(_b(owner)), digest)
        pipe.zrem(EXPIRY_INDEX_KEY, *digests)
        pipe.execute()

        logger.info(
            "Purged expired refresh tokens",
            extra={"event": "ledger.purge", "count": len(digests)},
        )
        return len(digests)

    def count_expired_before(self, cutoff: datetime) -> int:
        effective = min(cutoff, self.clock())
        return int(self.r.zcount(EXPIRY_INDEX_KEY, "-inf", effective.timestamp()))

    def get(self, token: str) -> SessionTokenView | None:
        return self._view(self.r.hgetall(self._k(token)))

    # -------------------- internals --------------------

    def _cleanup(self, user_id: int) -> int:
        """Drop the user's expired or revoked records; failures are only logged."""
        key_u = self._ku(user_id)
        try:
            now = self.clock()
            stale: list[str] = []
            for member in self.r.smembers(key_u):
                digest = _b(member)
                view = self._view(self.r.hgetall(f"rt:{digest}"))
                if view is None or not view.is_valid(now):
                    stale.append(digest)

            if not stale:
                return 0
            pipe = self.r.pipeline(transaction=True)
            for digest in stale:
                pipe.delete(f"rt:{digest}")
            pipe.srem(key_u, *stale)
            pipe.zrem(EXPIRY_INDEX_KEY, *stale)
            pipe.execute()
        except redis.RedisError as exc:
            logger.warning(
                "Refresh token cleanup failed",
                extra={"event": "ledger.cleanup_failed", "user_id": user_id, "reason": str(exc)},
            )
            return 0
        return len(stale)
