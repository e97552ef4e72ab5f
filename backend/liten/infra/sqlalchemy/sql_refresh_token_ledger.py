# liten/infra/sqlalchemy/sql_refresh_token_ledger.py
from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError

from liten.models.base import as_utc
from liten.models.refresh_token import RefreshToken
from liten.services._shared.ports.refresh_token_ledger import (
    DEFAULT_REFRESH_TTL,
    RefreshTokenLedger,
    RotationOutcome,
    RotationResult,
    SessionTokenView,
    utcnow,
)
from liten.uow.sqlalchemy_uow import SQLAlchemyReadOnlyUnitOfWork, SQLAlchemyUnitOfWork

logger = logging.getLogger(__name__)


def _to_view(record: RefreshToken) -> SessionTokenView:
    return SessionTokenView(
        token=record.token,
        user_id=record.user_id,
        expires_at=as_utc(record.expires_at),  # type: ignore[arg-type]
        revoked=bool(record.is_revoked),
        device_info=record.device_info,
        deleted=record.deleted_at is not None,
    )


@dataclass(slots=True)
class SQLRefreshTokenLedger(RefreshTokenLedger):
    """
    Durable ledger on the ``refresh_tokens`` table.

    Each operation opens a :class:`SQLAlchemyUnitOfWork`; when the caller
    already holds one (for example ``register`` creating the user) the
    ledger joins it and the rows commit together.

    Rotation never reads-then-writes: the validity re-check is the ``WHERE``
    clause of the revoking ``UPDATE``, so on PostgreSQL the row lock makes a
    concurrent rotation wait and then match zero rows, and on SQLite the
    database-wide writer lock serializes the two statements.

    :param refresh_ttl: Lifetime of new records.
    :param clock: Source of "now" (UTC-aware).
    :param cleanup_on_issue: Purge the owner's stale rows after each issue.
    """

    refresh_ttl: timedelta = DEFAULT_REFRESH_TTL
    clock: Callable[[], datetime] = field(default=utcnow)
    cleanup_on_issue: bool = True
    uow_factory: Callable[[], SQLAlchemyUnitOfWork] = field(default=SQLAlchemyUnitOfWork)
    ro_uow_factory: Callable[[], SQLAlchemyReadOnlyUnitOfWork] = field(
        default=SQLAlchemyReadOnlyUnitOfWork
    )

    # -------------------- writes --------------------

    def issue(
        self, *, user_id: int, token: str, device_info: str | None = None
    ) -> SessionTokenView:
        with self.uow_factory() as uow:
            record = RefreshToken(
                token=token,
                user_id=user_id,
                expires_at=self.clock() + self.refresh_ttl,
                is_revoked=False,
                device_info=device_info,
            )
            uow.refresh_tokens.add(record)
            view = _to_view(record)
            if self.cleanup_on_issue:
                uow.after_commit(lambda: self._cleanup(user_id))
        return view

    def revoke(self, token: str) -> None:
        with self.uow_factory() as uow:
            changed = uow.refresh_tokens.revoke_token(token)
        if changed:
            logger.debug("Refresh token revoked", extra={"event": "ledger.revoke"})

    def revoke_all(self, user_id: int) -> int:
        with self.uow_factory() as uow:
            count = uow.refresh_tokens.revoke_all_valid(user_id, self.clock())
        logger.info(
            "Revoked all sessions",
            extra={"event": "ledger.revoke_all", "user_id": user_id, "count": count},
        )
        return count

    def rotate(
        self,
        *,
        old_token: str,
        user_id: int,
        new_token: str,
        device_info: str | None = None,
    ) -> RotationOutcome:
        now = self.clock()
        with self.uow_factory() as uow:
            won = uow.refresh_tokens.revoke_if_valid(token=old_token, user_id=user_id, now=now)
            if not won:
                result = self._classify(uow.refresh_tokens.find_by_token(old_token), user_id, now)
                logger.warning(
                    "Refresh rotation rejected",
                    extra={"event": "ledger.rotate", "user_id": user_id, "reason": result.name},
                )
                return RotationOutcome(result)

            if device_info is None:
                previous = uow.refresh_tokens.find_by_token(old_token)
                device_info = previous.device_info if previous is not None else None

            record = RefreshToken(
                token=new_token,
                user_id=user_id,
                expires_at=now + self.refresh_ttl,
                is_revoked=False,
                device_info=device_info,
            )
            uow.refresh_tokens.add(record)
            view = _to_view(record)
            if self.cleanup_on_issue:
                uow.after_commit(lambda: self._cleanup(user_id))
        return RotationOutcome(RotationResult.OK, view)

    def purge_expired_before(self, cutoff: datetime) -> int:
        effective = min(cutoff, self.clock())
        with self.uow_factory() as uow:
            removed = uow.refresh_tokens.delete_expired_before(effective)
        logger.info(
            "Purged expired refresh tokens",
            extra={"event": "ledger.purge", "count": removed},
        )
        return removed

    def count_expired_before(self, cutoff: datetime) -> int:
        effective = min(cutoff, self.clock())
        with self.ro_uow_factory() as uow:
            return uow.refresh_tokens.count_expired_before(effective)

    # -------------------- reads --------------------

    def is_valid(self, token: str) -> bool:
        with self.ro_uow_factory() as uow:
            return uow.refresh_tokens.exists_valid(token, self.clock())

    def get(self, token: str) -> SessionTokenView | None:
        with self.ro_uow_factory() as uow:
            record = uow.refresh_tokens.find_by_token(token)
            return _to_view(record) if record is not None else None

    # -------------------- internals --------------------

    @staticmethod
    def _classify(record: RefreshToken | None, user_id: int, now: datetime) -> RotationResult:
        if record is None or record.user_id != user_id or record.deleted_at is not None:
            return RotationResult.NOT_FOUND
        if record.is_revoked:
            return RotationResult.REVOKED
        if record.is_expired(now):
            return RotationResult.EXPIRED
        # Valid again at re-read time: a concurrent writer still won the UPDATE.
        return RotationResult.REVOKED

    def _cleanup(self, user_id: int) -> int:
        try:
            with self.uow_factory() as uow:
                removed = uow.refresh_tokens.delete_stale_for_user(user_id, self.clock())
        except SQLAlchemyError as exc:
            logger.warning(
                "Refresh token cleanup failed",
                extra={"event": "ledger.cleanup_failed", "user_id": user_id, "reason": str(exc)},
            )
            return 0
        if removed:
            logger.debug(
                "Removed stale refresh tokens",
                extra={"event": "ledger.cleanup", "user_id": user_id, "count": removed},
            )
        return removed
