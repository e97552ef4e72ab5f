"""Unit tests for the SQLAlchemy units of work."""

from __future__ import annotations

import pytest
from sqlalchemy import select, text

from liten.models.user import User
from liten.uow import SQLAlchemyReadOnlyUnitOfWork, SQLAlchemyUnitOfWork
from tests.factories.user import UserFactory


def _new_user(n: int = 1) -> User:
    return User(
        email=f"uow{n}@example.com",
        password_hash="pbkdf2:sha256:1000$salt$hash",
        app_unique_id=f"uow-device-{n}",
    )


def _emails(session) -> set[str]:
    return set(session.execute(select(User.email)).scalars())


class TestReadWrite:
    def test_commits_on_clean_exit(self, session):
        with SQLAlchemyUnitOfWork() as uow:
            uow.users.save(_new_user())
        session.expire_all()
        assert _emails(session) == {"uow1@example.com"}

    def test_rolls_back_on_exception(self, session):
        with pytest.raises(ValueError):
            with SQLAlchemyUnitOfWork() as uow:
                uow.users.save(_new_user())
                raise ValueError("boom")
        assert _emails(session) == set()

    def test_nested_scope_joins_outer_transaction(self, session):
        with pytest.raises(RuntimeError):
            with SQLAlchemyUnitOfWork() as outer:
                outer.users.save(_new_user(1))
                with SQLAlchemyUnitOfWork() as inner:
                    inner.users.save(_new_user(2))
                    assert inner.depth == 2
                # Inner exit did not commit; the outer failure discards both
                raise RuntimeError("abort")
        assert _emails(session) == set()

    def test_nested_exception_propagates_and_rolls_back_everything(self, session):
        with pytest.raises(KeyError):
            with SQLAlchemyUnitOfWork() as outer:
                outer.users.save(_new_user(1))
                with SQLAlchemyUnitOfWork() as inner:
                    inner.users.save(_new_user(2))
                    raise KeyError("inner")
        assert _emails(session) == set()
        assert session.info.get("liten.uow_depth") == 0

    def test_after_commit_runs_once_after_outermost_commit(self, session):
        calls: list[int] = []
        with SQLAlchemyUnitOfWork() as outer:
            outer.users.save(_new_user())
            with SQLAlchemyUnitOfWork() as inner:
                inner.after_commit(lambda: calls.append(outer.depth))
            assert calls == []
        assert calls == [0]

    def test_after_commit_dropped_on_rollback(self, session):
        calls: list[str] = []
        with pytest.raises(RuntimeError):
            with SQLAlchemyUnitOfWork() as uow:
                uow.after_commit(lambda: calls.append("ran"))
                raise RuntimeError("abort")
        assert calls == []

        with SQLAlchemyUnitOfWork():
            pass
        assert calls == []

    def test_after_commit_outside_scope_runs_immediately(self, session):
        calls: list[str] = []
        SQLAlchemyUnitOfWork().after_commit(lambda: calls.append("now"))
        assert calls == ["now"]


class TestReadOnly:
    def test_reads_committed_rows(self, session):
        user = UserFactory()
        with SQLAlchemyReadOnlyUnitOfWork() as uow:
            found = uow.users.find_active_by_email(user.email)
            assert found is not None and found.id == user.id

    def test_blocks_orm_flush(self, session):
        with pytest.raises(RuntimeError, match="flush blocked"):
            with SQLAlchemyReadOnlyUnitOfWork() as uow:
                uow.session.add(_new_user())
                uow.session.flush()

    def test_blocks_raw_dml(self, session):
        with pytest.raises(RuntimeError, match="statement blocked"):
            with SQLAlchemyReadOnlyUnitOfWork() as uow:
                uow.session.execute(text("DELETE FROM users"))

    def test_commit_is_rejected(self, session):
        with SQLAlchemyReadOnlyUnitOfWork() as uow:
            with pytest.raises(RuntimeError):
                uow.commit()
            with pytest.raises(RuntimeError):
                uow.after_commit(lambda: None)

    def test_guards_are_removed_on_exit(self, session):
        with SQLAlchemyReadOnlyUnitOfWork():
            pass
        with SQLAlchemyUnitOfWork() as uow:
            uow.users.save(_new_user())
        assert _emails(session) == {"uow1@example.com"}

    def test_inside_read_write_scope_does_not_roll_back(self, session):
        with SQLAlchemyUnitOfWork() as uow:
            uow.users.save(_new_user())
            with SQLAlchemyReadOnlyUnitOfWork() as ro:
                assert ro.users.exists_by_email("uow1@example.com")
        assert _emails(session) == {"uow1@example.com"}

    def test_opens_on_an_idle_scoped_session(self, session):
        session.remove()
        with SQLAlchemyReadOnlyUnitOfWork() as uow:
            assert uow.session is session()
            assert not uow.users.exists_by_email("nobody@example.com")
        assert not uow.session.in_transaction()

    def test_accepts_the_scoped_registry_explicitly(self, session):
        user = UserFactory()
        with SQLAlchemyReadOnlyUnitOfWork(session=session) as uow:
            assert uow.session is session()
            assert uow.users.exists_by_email(user.email)
