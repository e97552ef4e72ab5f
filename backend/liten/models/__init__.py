from liten.models.base import AuditStamp, is_deleted
from liten.models.refresh_token import RefreshToken
from liten.models.user import AuthProvider, SubscriptionType, User

__all__ = [
    "AuditStamp",
    "AuthProvider",
    "RefreshToken",
    "SubscriptionType",
    "User",
    "is_deleted",
]
