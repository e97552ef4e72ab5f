"""Pytest fixtures for the Liten API.

The application is built once per session; every test gets fresh tables in
an in-memory SQLite database, so units of work can really commit.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Generator
from typing import Any

import pytest
from flask import Flask

from liten.core.config import TestingConfig
from liten.core.extensions import db as _db
from liten.core.wiring import AuthComponents, get_components
from liten.factory import create_app
from liten.infra.jwt.pyjwt_token_issuer import JWTTokenIssuer, SigningKey
from liten.infra.security.werkzeug_credential_store import WerkzeugCredentialStore
from liten.services import AuthService
from liten.services._shared.base import ServiceContext
from liten.services._shared.ports import InMemoryRefreshTokenLedger
from tests.helpers.utils import MutableClock

TEST_HASH_METHOD = "pbkdf2:sha256:1000"


@pytest.fixture(scope="session")
def app() -> Flask:
    """Create a Flask application configured for testing.

    Returns
    -------
    flask.Flask
        Application with :class:`TestingConfig` applied.
    """
    # Ensure env-based config does not leak into tests
    os.environ.pop("DATABASE_URL", None)
    application = create_app(TestingConfig)
    application.logger.setLevel("WARNING")
    return application


@pytest.fixture()
def db(app: Flask) -> Generator[Any, None, None]:
    """Create all tables inside an app context and drop them afterwards.

    Yields
    ------
    flask_sqlalchemy.SQLAlchemy
        Database extension bound to the testing application.
    """
    with app.app_context():
        _db.create_all()
        yield _db
        _db.session.remove()
        _db.drop_all()


@pytest.fixture()
def session(db: Any) -> Any:
    """Return the Flask-scoped session used by repositories and units of work."""
    return db.session


@pytest.fixture()
def client(app: Flask, db: Any) -> Any:
    """Return a Flask test client with fresh tables."""
    return app.test_client()


@pytest.fixture()
def components(db: Any) -> AuthComponents:
    """Collaborators built by the application factory."""
    return get_components()


@pytest.fixture()
def clock() -> MutableClock:
    return MutableClock()


@pytest.fixture()
def signing_key() -> SigningKey:
    return SigningKey(secret="unit-test-signing-key-0123456789abcdef")


@pytest.fixture()
def issuer(signing_key: SigningKey) -> JWTTokenIssuer:
    return JWTTokenIssuer(key=signing_key)


@pytest.fixture()
def credential_store() -> WerkzeugCredentialStore:
    return WerkzeugCredentialStore(method=TEST_HASH_METHOD)


@pytest.fixture()
def memory_ledger() -> InMemoryRefreshTokenLedger:
    return InMemoryRefreshTokenLedger()


@pytest.fixture()
def auth_service_factory(
    credential_store: WerkzeugCredentialStore, issuer: JWTTokenIssuer
) -> Callable[..., AuthService]:
    """Build an :class:`AuthService` over a chosen ledger."""

    def _factory(ledger: Any, ctx: ServiceContext | None = None) -> AuthService:
        return AuthService(
            credential_store=credential_store, token_issuer=issuer, ledger=ledger, ctx=ctx
        )

    return _factory


@pytest.fixture(scope="session")
def faker():
    """Provide a :class:`faker.Faker` instance seeded for deterministic tests."""
    from faker import Faker

    fk = Faker()
    Faker.seed(1337)
    return fk


# -- Hook up Factory Boy to the Flask-scoped session ---------------------------
@pytest.fixture(autouse=True)
def _factories_session(request: pytest.FixtureRequest) -> Generator[None, None, None]:
    """Wire Factory Boy's session helper when the test uses the database."""
    from tests.factories import SQLAlchemySession

    if "db" in request.fixturenames:
        SQLAlchemySession.set(request.getfixturevalue("session"))
    yield
    SQLAlchemySession.set(None)
