# liten/services/auth/service.py
from __future__ import annotations

import logging
from typing import NamedTuple

from sqlalchemy.exc import IntegrityError

from liten.models.base import as_utc
from liten.models.user import (
    DEFAULT_LANGUAGE_CODE,
    DEFAULT_THEME,
    AuthProvider,
    SubscriptionType,
    User,
)
from liten.services._shared.base import BaseService, ServiceContext
from liten.services._shared.errors import (
    AuthenticationError,
    AuthFailure,
    ConflictError,
    NotFoundError,
    NotImplementedFeatureError,
    TokenError,
    TokenFailure,
    ValidationError,
)
from liten.services._shared.ports import (
    CredentialStore,
    RefreshTokenLedger,
    TokenIdentity,
    TokenIssuer,
)
from liten.services.auth.dto import (
    LoginIn,
    LogoutIn,
    RefreshIn,
    RegisterIn,
    SocialLoginIn,
    TokenPairOut,
    UserSummaryOut,
)

log = logging.getLogger(__name__)


class _MintedPair(NamedTuple):
    access: str
    refresh: str


class AuthService(BaseService):
    """
    Authentication lifecycle service (register / login / refresh / logout).

    Session model: ``Anonymous -> Authenticated -> (Refreshed)* -> LoggedOut``.
    Every transition that hands tokens to a client mints both tokens first
    and only then writes the ledger, inside the same unit of work as the
    identity changes, so a failed ledger write never leaves a client holding
    tokens without a durable session record.
    """

    def __init__(
        self,
        *,
        credential_store: CredentialStore,
        token_issuer: TokenIssuer,
        ledger: RefreshTokenLedger,
        ctx: ServiceContext | None = None,
    ) -> None:
        """
        Initialize the service with its collaborators.

        :param credential_store: One-way password hashing adapter.
        :param token_issuer: Mints and checks signed tokens.
        :param ledger: Authoritative refresh-token state.
        :param ctx: Optional request-scoped context.
        """
        super().__init__(ctx=ctx)
        self.credentials = credential_store
        self.tokens = token_issuer
        self.ledger = ledger

    # ------------------------------------------------------------------ #
    # Register
    # ------------------------------------------------------------------ #

    def register(self, dto: RegisterIn) -> TokenPairOut:
        """
        Create a LOCAL identity and open its first session.

        :param dto: Sign-up input.
        :returns: Token pair with the identity summary.
        :raises ValidationError: Empty password or malformed identity fields.
        :raises ConflictError: Email or app install id already in use.
        """
        if not dto.password:
            raise ValidationError("Password must not be empty.")

        try:
            with self.rw_uow() as uow:
                if uow.users.exists_by_email(dto.email):
                    raise ConflictError("User", "email is already registered")
                if uow.users.exists_by_app_unique_id(dto.app_unique_id):
                    raise ConflictError("User", "app_unique_id is already registered")

                user = self._new_local_user(dto)
                uow.users.save(user)

                pair = self._mint_pair(user, fresh=True)
                self.ledger.issue(user_id=user.id, token=pair.refresh, device_info=dto.device_info)
                out = self._token_out(pair, user)
        except IntegrityError as exc:
            # Lost a race against a concurrent sign-up on a live unique index
            raise ConflictError("User", "email or app_unique_id is already registered") from exc

        log.info(
            "User registered",
            extra=self.log_extra(event="auth.register", user_id=out.user.user_id),
        )
        return out

    # ------------------------------------------------------------------ #
    # Login
    # ------------------------------------------------------------------ #

    def login(self, dto: LoginIn) -> TokenPairOut:
        """
        Authenticate credentials and issue a fresh token pair.

        Sessions held on other devices stay valid.

        :param dto: Login input.
        :returns: Token pair with the identity summary.
        :raises AuthenticationError: Unknown/inactive email or wrong password.
        """
        with self.rw_uow() as uow:
            user = uow.users.find_active_by_email(dto.email)
            if user is None:
                log.warning(
                    "Login rejected",
                    extra=self.log_extra(event="auth.login", reason="user_not_found"),
                )
                raise AuthenticationError(AuthFailure.NOT_FOUND)

            if not self.credentials.verify(dto.password, user.password_hash):
                log.warning(
                    "Login rejected",
                    extra=self.log_extra(
                        event="auth.login",
                        user_id=user.id,
                        reason="invalid_credentials",
                    ),
                )
                raise AuthenticationError(AuthFailure.INVALID_CREDENTIALS)

            user.touch_login()
            pair = self._mint_pair(user, fresh=True)
            self.ledger.issue(user_id=user.id, token=pair.refresh, device_info=dto.device_info)
            out = self._token_out(pair, user)

        log.info(
            "User logged in",
            extra=self.log_extra(event="auth.login", user_id=out.user.user_id),
        )
        return out

    # ------------------------------------------------------------------ #
    # Refresh with atomic rotation
    # ------------------------------------------------------------------ #

    def refresh(self, dto: RefreshIn) -> TokenPairOut:
        """
        Exchange a refresh token for a new pair, revoking the old one.

        :param dto: Refresh input.
        :returns: New token pair (no identity summary).
        :raises TokenError: ``INVALID``/``EXPIRED`` when the token is not
            honoured; ``REVOKED`` when a concurrent rotation won.
        :raises NotFoundError: The identity vanished since issuance.
        """
        old = dto.refresh_token
        if not self.ledger.is_valid(old):
            log.warning(
                "Refresh rejected",
                extra=self.log_extra(event="auth.refresh", reason="ledger"),
            )
            raise TokenError(TokenFailure.INVALID)

        claims = self.tokens.verify(old, expected_type="refresh")
        email = str(claims["sub"])

        with self.rw_uow() as uow:
            user = uow.users.find_active_by_email(email)
            if user is None:
                raise NotFoundError("User", email)

            pair = self._mint_pair(user, fresh=False)
            outcome = self.ledger.rotate(old_token=old, user_id=user.id, new_token=pair.refresh)
            if not outcome.ok:
                log.warning(
                    "Refresh rotation lost",
                    extra=self.log_extra(
                        event="auth.refresh",
                        user_id=user.id,
                        reason=outcome.result.name,
                    ),
                )
                raise TokenError(TokenFailure.REVOKED, outcome.result.name)
            user_id = user.id

        log.info("Token pair rotated", extra=self.log_extra(event="auth.refresh", user_id=user_id))

        return TokenPairOut(
            access_token=pair.access,
            refresh_token=pair.refresh,
            expires_in=self._expires_in(),
        )

    # ------------------------------------------------------------------ #
    # Logout
    # ------------------------------------------------------------------ #

    def logout(self, dto: LogoutIn) -> None:
        """
        Revoke the presented refresh token.

        Missing, unknown or already revoked tokens are a silent no-op.
        """
        if dto.refresh_token:
            self.ledger.revoke(dto.refresh_token)
        log.info("User logged out", extra=self.log_extra(event="auth.logout"))


    def logout_all(self, email: str) -> int:
        """
        Terminate every live session of an identity.

        :param email: Subject of the authenticated access token.
        :returns: Number of sessions revoked.
        :raises NotFoundError: No active identity for ``email``.
        """
        with self.rw_uow() as uow:
            user = uow.users.find_active_by_email(email)
            if user is None:
                raise NotFoundError("User", email)
            user_id = user.id
            count = self.ledger.revoke_all(user_id)

        log.info(
            "All sessions revoked",
            extra=self.log_extra(event="auth.logout_all", user_id=user_id, count=count),
        )
        return count

    # ------------------------------------------------------------------ #
    # Queries & stubs
    # ------------------------------------------------------------------ #

    def whoami(self, email: str) -> UserSummaryOut:
        """Return the summary of the identity behind an access token."""
        with self.ro_uow() as uow:
            user = uow.users.find_active_by_email(email)
            if user is None:
                raise NotFoundError("User", email)
            return self._summary(user)

    def social_login(self, dto: SocialLoginIn) -> TokenPairOut:
        """Provider sign-in is not supported; always raises."""
        log.warning(
            "Social login attempted",
            extra=self.log_extra(event="auth.social_login", reason=dto.provider),
        )
        raise NotImplementedFeatureError("Social login is not supported yet.")

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _new_local_user(self, dto: RegisterIn) -> User:
        try:
            return User(
                email=dto.email,
                password_hash=self.credentials.hash(dto.password),
                nickname=dto.nickname,
                app_unique_id=dto.app_unique_id,
                provider=AuthProvider.LOCAL,
                subscription_type=SubscriptionType.FREE,
                language_code=dto.language_code or DEFAULT_LANGUAGE_CODE,
                theme=dto.theme or DEFAULT_THEME,
                is_active=True,
            )
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc

    def _mint_pair(self, user: User, *, fresh: bool) -> _MintedPair:
        identity = TokenIdentity(user_id=user.id, email=user.email)
        return _MintedPair(
            access=self.tokens.mint_access(identity, fresh=fresh),
            refresh=self.tokens.mint_refresh(identity),
        )

    def _expires_in(self) -> int:
        return int(self.tokens.access_ttl.total_seconds())

    def _token_out(self, pair: _MintedPair, user: User) -> TokenPairOut:
        return TokenPairOut(
            access_token=pair.access,
            refresh_token=pair.refresh,
            expires_in=self._expires_in(),
            user=self._summary(user),
        )

    @staticmethod
    def _summary(user: User) -> UserSummaryOut:
        return UserSummaryOut(
            user_id=user.id,
            email=user.email,
            nickname=user.nickname,
            profile_image_url=user.profile_image_url,
            app_unique_id=user.app_unique_id,
            provider=AuthProvider(user.provider).value,
            subscription_type=SubscriptionType(user.subscription_type).value,
            subscription_end_date=as_utc(user.subscription_end_date),
            language_code=user.language_code,
            theme=user.theme,
            last_login_at=as_utc(user.last_login_at),
            created_at=as_utc(user.created_at),
        )
