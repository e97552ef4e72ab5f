"""Tests for the SQL-backed refresh-token ledger."""

from __future__ import annotations

import logging
import threading
from datetime import timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from liten.core.config import TestingConfig
from liten.core.extensions import db as _db
from liten.factory import create_app
from liten.infra.sqlalchemy.sql_refresh_token_ledger import SQLRefreshTokenLedger
from liten.models.refresh_token import RefreshToken
from liten.models.user import User
from liten.repositories.refresh_token import RefreshTokenRepository
from liten.services._shared.ports import RotationResult
from liten.uow import SQLAlchemyUnitOfWork
from tests.factories.refresh_token import RefreshTokenFactory
from tests.factories.user import UserFactory


@pytest.fixture()
def ledger(db, clock) -> SQLRefreshTokenLedger:
    return SQLRefreshTokenLedger(clock=clock, cleanup_on_issue=False)


@pytest.fixture()
def user(db):
    return UserFactory()


def _rows(session) -> list[RefreshToken]:
    return list(session.execute(select(RefreshToken)).scalars())


class TestIssue:
    def test_persists_a_valid_record(self, ledger, user, clock, session):
        view = ledger.issue(user_id=user.id, token="rt-1", device_info="Galaxy S24")

        assert view.expires_at == clock.now + timedelta(days=7)
        assert view.device_info == "Galaxy S24"
        assert ledger.is_valid("rt-1") is True
        assert [r.token for r in _rows(session)] == ["rt-1"]

    def test_expired_at_the_boundary(self, ledger, user, clock):
        ledger.issue(user_id=user.id, token="rt-1")

        clock.advance(days=7, seconds=-1)
        assert ledger.is_valid("rt-1") is True
        clock.advance(seconds=1)
        assert ledger.is_valid("rt-1") is False

    def test_cleanup_removes_stale_rows_of_the_same_user(self, db, user, clock, session):
        ledger = SQLRefreshTokenLedger(clock=clock)
        other = UserFactory()
        ledger.issue(user_id=user.id, token="old")
        ledger.revoke("old")
        ledger.issue(user_id=other.id, token="other-revoked")
        ledger.revoke("other-revoked")

        ledger.issue(user_id=user.id, token="new")

        tokens = {r.token for r in _rows(session)}
        assert "old" not in tokens
        assert {"new", "other-revoked"} <= tokens

    def test_cleanup_failure_is_logged_and_swallowed(
        self, db, user, clock, session, monkeypatch, caplog
    ):
        def _boom(self, user_id, now):
            raise OperationalError("DELETE FROM refresh_tokens", {}, Exception("database is locked"))

        monkeypatch.setattr(RefreshTokenRepository, "delete_stale_for_user", _boom)
        ledger = SQLRefreshTokenLedger(clock=clock)

        with caplog.at_level(logging.WARNING):
            view = ledger.issue(user_id=user.id, token="rt-1")

        assert view.token == "rt-1"
        assert ledger.is_valid("rt-1") is True
        assert any(getattr(r, "event", None) == "ledger.cleanup_failed" for r in caplog.records)

    def test_joins_an_open_unit_of_work(self, ledger, user, session):
        with pytest.raises(RuntimeError):
            with SQLAlchemyUnitOfWork():
                ledger.issue(user_id=user.id, token="rt-1")
                raise RuntimeError("abort")

        assert ledger.get("rt-1") is None


class TestRevoke:
    def test_revoke_is_idempotent(self, ledger, user):
        ledger.issue(user_id=user.id, token="rt-1")

        ledger.revoke("rt-1")
        ledger.revoke("rt-1")
        ledger.revoke("unknown")

        view = ledger.get("rt-1")
        assert view is not None and view.revoked is True

    def test_revoke_all_returns_number_of_valid_records(self, ledger, user, clock):
        ledger.issue(user_id=user.id, token="a")
        ledger.issue(user_id=user.id, token="b")
        ledger.issue(user_id=user.id, token="c")
        ledger.revoke("c")

        assert ledger.revoke_all(user.id) == 2
        assert ledger.is_valid("a") is False
        assert ledger.revoke_all(user.id) == 0


class TestRotate:
    def test_ok_revokes_old_and_carries_device_info(self, ledger, user):
        ledger.issue(user_id=user.id, token="old", device_info="iPad Air")

        outcome = ledger.rotate(old_token="old", user_id=user.id, new_token="new")

        assert outcome.result is RotationResult.OK
        assert outcome.record is not None and outcome.record.device_info == "iPad Air"
        assert ledger.is_valid("old") is False
        assert ledger.is_valid("new") is True

    def test_explicit_device_info_wins(self, ledger, user):
        ledger.issue(user_id=user.id, token="old", device_info="iPad Air")
        outcome = ledger.rotate(
            old_token="old", user_id=user.id, new_token="new", device_info="iPad Pro"
        )
        assert outcome.record.device_info == "iPad Pro"

    def test_unknown_token(self, ledger, user):
        outcome = ledger.rotate(old_token="missing", user_id=user.id, new_token="new")
        assert outcome.result is RotationResult.NOT_FOUND
        assert ledger.get("new") is None

    def test_token_of_another_user(self, ledger, user):
        other = UserFactory()
        ledger.issue(user_id=other.id, token="old")
        outcome = ledger.rotate(old_token="old", user_id=user.id, new_token="new")
        assert outcome.result is RotationResult.NOT_FOUND

    def test_revoked_token(self, ledger, user):
        ledger.issue(user_id=user.id, token="old")
        ledger.revoke("old")

        outcome = ledger.rotate(old_token="old", user_id=user.id, new_token="new")

        assert outcome.result is RotationResult.REVOKED
        assert ledger.get("new") is None

    def test_expired_token(self, ledger, user, clock):
        ledger.issue(user_id=user.id, token="old")
        clock.advance(days=7)

        outcome = ledger.rotate(old_token="old", user_id=user.id, new_token="new")

        assert outcome.result is RotationResult.EXPIRED
        assert ledger.get("new") is None

    def test_second_rotation_of_the_same_token_loses(self, ledger, user):
        ledger.issue(user_id=user.id, token="old")

        first = ledger.rotate(old_token="old", user_id=user.id, new_token="new-1")
        second = ledger.rotate(old_token="old", user_id=user.id, new_token="new-2")

        assert first.ok
        assert second.result is RotationResult.REVOKED
        assert ledger.get("new-2") is None

    def test_soft_deleted_record_is_not_found(self, ledger, user, clock, session):
        record = RefreshTokenFactory(
            user=user, token="old", expires_at=clock.now + timedelta(days=1)
        )
        record.deleted_at = clock.now
        session.commit()

        outcome = ledger.rotate(old_token="old", user_id=user.id, new_token="new")

        assert outcome.result is RotationResult.NOT_FOUND
        assert ledger.is_valid("old") is False


class TestPurge:
    def test_future_cutoff_is_clamped_to_now(self, ledger, user, clock):
        ledger.issue(user_id=user.id, token="expired")
        clock.advance(days=8)
        ledger.issue(user_id=user.id, token="live")

        removed = ledger.purge_expired_before(clock.now + timedelta(days=30))

        assert removed == 1
        assert ledger.get("expired") is None
        assert ledger.is_valid("live") is True

    def test_grace_period_keeps_recently_expired_rows(self, ledger, user, clock):
        ledger.issue(user_id=user.id, token="recent")
        clock.advance(days=8)

        assert ledger.purge_expired_before(clock.now - timedelta(days=3)) == 0
        assert ledger.get("recent") is not None

    def test_count_matches_what_purge_removes(self, ledger, user, clock):
        ledger.issue(user_id=user.id, token="expired")
        clock.advance(days=8)
        ledger.issue(user_id=user.id, token="live")

        assert ledger.count_expired_before(clock.now + timedelta(days=30)) == 1
        assert ledger.count_expired_before(clock.now - timedelta(days=3)) == 0
        assert ledger.purge_expired_before(clock.now) == 1
        assert ledger.count_expired_before(clock.now) == 0


# -- Concurrency on a file-backed database (one connection per thread) ---------
@pytest.fixture()
def file_app(tmp_path):
    class _FileConfig(TestingConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'rotation.db'}"
        SQLALCHEMY_ENGINE_OPTIONS = {
            "connect_args": {"check_same_thread": False, "timeout": 30},
        }

    application = create_app(_FileConfig)
    with application.app_context():
        _db.create_all()
    yield application
    with application.app_context():
        _db.session.remove()
        _db.drop_all()
        _db.engine.dispose()


class TestConcurrentRotation:
    THREADS = 6

    def test_exactly_one_thread_wins(self, file_app, clock):
        ledger = SQLRefreshTokenLedger(clock=clock, cleanup_on_issue=False)
        with file_app.app_context():
            with SQLAlchemyUnitOfWork() as uow:
                owner = uow.users.save(
                    User(
                        email="race@example.com",
                        password_hash="pbkdf2:sha256:1000$salt$hash",
                        app_unique_id="race-device",
                    )
                )
                user_id = owner.id
            ledger.issue(user_id=user_id, token="old")

        barrier = threading.Barrier(self.THREADS)
        results: list[RotationResult] = []
        errors: list[BaseException] = []

        def worker(i: int) -> None:
            with file_app.app_context():
                barrier.wait()
                try:
                    outcome = ledger.rotate(old_token="old", user_id=user_id, new_token=f"new-{i}")
                    results.append(outcome.result)
                except Exception as exc:
                    errors.append(exc)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(self.THREADS)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert results.count(RotationResult.OK) == 1
        assert results.count(RotationResult.REVOKED) == self.THREADS - 1

        with file_app.app_context():
            tokens = list(_db.session.execute(select(RefreshToken.token)).scalars())
            live = [t for t in tokens if ledger.is_valid(t)]
        assert len(live) == 1 and live[0].startswith("new-")
