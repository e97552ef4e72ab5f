"""Repository package exposing persistence-layer access for all domain models."""

from __future__ import annotations

from liten.repositories.base import BaseRepository
from liten.repositories.refresh_token import RefreshTokenRepository
from liten.repositories.user import UserRepository

__all__ = [
    "BaseRepository",
    "RefreshTokenRepository",
    "UserRepository",
]
