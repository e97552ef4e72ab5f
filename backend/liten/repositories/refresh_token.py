"""Refresh token repository: set-based statements behind the SQL ledger."""

from __future__ import annotations

from datetime import datetime
from typing import cast

from sqlalchemy import CursorResult, delete, func, or_, select, update

from liten.models.refresh_token import RefreshToken
from liten.repositories.base import BaseRepository


def _valid_at(now: datetime):
    """SQL predicate for records that can still be exchanged at ``now``."""
    return (
        RefreshToken.is_revoked.is_(False),
        RefreshToken.deleted_at.is_(None),
        RefreshToken.expires_at > now,
    )


class RefreshTokenRepository(BaseRepository[RefreshToken]):
    """Persistence-only repository for :class:`RefreshToken`.

    Every state transition is a single conditional ``UPDATE``/``DELETE`` so
    concurrent callers are serialized by the database, not by Python.
    """

    model = RefreshToken

    def find_by_token(self, token: str) -> RefreshToken | None:
        stmt = (
            select(RefreshToken)
            .where(RefreshToken.token == token)
            .execution_options(populate_existing=True)
        )
        return cast(RefreshToken | None, self.session.execute(stmt).scalars().first())

    def exists_valid(self, token: str, now: datetime) -> bool:
        stmt = select(RefreshToken.id).where(RefreshToken.token == token, *_valid_at(now))
        return self.session.execute(stmt.limit(1)).first() is not None

    def revoke_token(self, token: str) -> int:
        """Flip ``is_revoked`` for one live record; returns affected rows (0 or 1)."""
        stmt = (
            update(RefreshToken)
            .where(
                RefreshToken.token == token,
                RefreshToken.is_revoked.is_(False),
            )
            .values(is_revoked=True)
            .execution_options(synchronize_session=False)
        )
        return self._rowcount(stmt)

    def revoke_if_valid(self, *, token: str, user_id: int, now: datetime) -> int:
        """Revoke ``token`` only if it is valid and owned by ``user_id``.

        This is the compare-and-set step of rotation: the validity re-check
        and the revocation happen in one statement.

        :returns: ``1`` when this caller won the rotation, ``0`` otherwise.
        """
        stmt = (
            update(RefreshToken)
            .where(
                RefreshToken.token == token,
                RefreshToken.user_id == user_id,
                *_valid_at(now),
            )
            .values(is_revoked=True)
            .execution_options(synchronize_session=False)
        )
        return self._rowcount(stmt)

    def revoke_all_valid(self, user_id: int, now: datetime) -> int:
        stmt = (
            update(RefreshToken)
            .where(RefreshToken.user_id == user_id, *_valid_at(now))
            .values(is_revoked=True)
            .execution_options(synchronize_session=False)
        )
        return self._rowcount(stmt)

    def delete_stale_for_user(self, user_id: int, now: datetime) -> int:
        """Physically remove the user's expired or revoked live records."""
        stmt = (
            delete(RefreshToken)
            .where(
                RefreshToken.user_id == user_id,
                RefreshToken.deleted_at.is_(None),
                or_(RefreshToken.is_revoked.is_(True), RefreshToken.expires_at <= now),
            )
            .execution_options(synchronize_session=False)
        )
        return self._rowcount(stmt)

    def delete_expired_before(self, cutoff: datetime) -> int:
        stmt = (
            delete(RefreshToken)
            .where(RefreshToken.expires_at <= cutoff)
            .execution_options(synchronize_session=False)
        )
        return self._rowcount(stmt)

    def count_expired_before(self, cutoff: datetime) -> int:
        stmt = (
            select(func.count())
            .select_from(RefreshToken)
            .where(RefreshToken.expires_at <= cutoff)
        )
        return int(self.session.execute(stmt).scalar_one())

    def _rowcount(self, stmt) -> int:
        result = cast(CursorResult, self.session.execute(stmt))
        return int(result.rowcount or 0)
