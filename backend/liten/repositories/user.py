"""User repository: the identity directory consumed by authentication."""

from __future__ import annotations

from typing import cast

from sqlalchemy import select

from liten.models.user import User, normalize_email
from liten.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Persistence-only repository for :class:`User`.

    Lookups used for authentication only ever return *live* identities:
    not soft-deleted and, where stated, active. It NEVER handles passwords or
    tokens; those belong to the credential store and the token issuer.
    """

    model = User

    # ---------------------------- Lookup helpers ----------------------------

    def find_active_by_email(self, email: str) -> User | None:
        """Fetch the active, non-deleted identity for ``email``.

        :param email: Email address; normalized before the lookup.
        :type email: str
        :returns: User instance or ``None`` when not found.
        :rtype: User | None
        """
        stmt = select(User).where(
            User.email == normalize_email(email),
            User.deleted_at.is_(None),
            User.is_active.is_(True),
        )
        return cast(User | None, self.session.execute(stmt).scalars().first())

    def find_active_by_app_unique_id(self, app_unique_id: str) -> User | None:
        """Fetch the active, non-deleted identity bound to an app install id."""
        stmt = select(User).where(
            User.app_unique_id == app_unique_id.strip(),
            User.deleted_at.is_(None),
            User.is_active.is_(True),
        )
        return cast(User | None, self.session.execute(stmt).scalars().first())

    def exists_by_email(self, email: str) -> bool:
        """Return ``True`` when a non-deleted identity uses ``email``."""
        stmt = select(User.id).where(
            User.email == normalize_email(email), User.deleted_at.is_(None)
        )
        return self.session.execute(stmt.limit(1)).first() is not None

    def exists_by_app_unique_id(self, app_unique_id: str) -> bool:
        """Return ``True`` when a non-deleted identity uses ``app_unique_id``."""
        stmt = select(User.id).where(
            User.app_unique_id == app_unique_id.strip(), User.deleted_at.is_(None)
        )
        return self.session.execute(stmt.limit(1)).first() is not None

    # ---------------------------- Writes ----------------------------

    def save(self, user: User) -> User:
        """Stage ``user`` and flush so its id is available to token minting."""
        return self.add(user)
