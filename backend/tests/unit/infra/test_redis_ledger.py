"""Tests for the Redis-backed refresh-token ledger (fakeredis)."""

from __future__ import annotations

import logging
import threading
from datetime import timedelta

import fakeredis
import pytest
import redis

from liten.infra.redis.redis_refresh_token_ledger import (
    EXPIRY_INDEX_KEY,
    RedisRefreshTokenLedger,
)
from liten.services._shared.ports import RotationResult


@pytest.fixture()
def r():
    return fakeredis.FakeRedis()


@pytest.fixture()
def ledger(r, clock) -> RedisRefreshTokenLedger:
    return RedisRefreshTokenLedger(r=r, clock=clock, cleanup_on_issue=False)


def test_issue_stores_hash_and_indexes(ledger, r, clock):
    view = ledger.issue(user_id=7, token="rt-1", device_info="Pixel 9")

    digest = RedisRefreshTokenLedger._digest("rt-1")
    assert r.exists(f"rt:{digest}") == 1
    assert r.sismember("rt:u:7", digest)
    assert r.zscore(EXPIRY_INDEX_KEY, digest) == pytest.approx(view.expires_at.timestamp())
    # The raw token is only stored inside the hash, never as a key
    assert not r.exists("rt:rt-1")

    fetched = ledger.get("rt-1")
    assert fetched == view


def test_duplicate_token_is_rejected(ledger):
    ledger.issue(user_id=1, token="rt-1")
    with pytest.raises(ValueError):
        ledger.issue(user_id=1, token="rt-1")


def test_validity_follows_the_injected_clock(ledger, clock):
    ledger.issue(user_id=1, token="rt-1")
    assert ledger.is_valid("rt-1") is True

    clock.advance(days=7)
    assert ledger.is_valid("rt-1") is False
    assert ledger.is_valid("unknown") is False


def test_revoke_is_idempotent_and_ignores_unknown(ledger, r):
    ledger.issue(user_id=1, token="rt-1")

    ledger.revoke("rt-1")
    ledger.revoke("rt-1")
    ledger.revoke("never-issued")

    assert ledger.get("rt-1").revoked is True
    assert not r.exists(RedisRefreshTokenLedger._k("never-issued"))


def test_revoke_all_counts_valid_records(ledger, clock):
    ledger.issue(user_id=1, token="a")
    ledger.issue(user_id=1, token="b")
    ledger.issue(user_id=2, token="c")
    ledger.revoke("b")

    assert ledger.revoke_all(1) == 1
    assert ledger.is_valid("a") is False
    assert ledger.is_valid("c") is True


class TestRotate:
    def test_ok(self, ledger):
        ledger.issue(user_id=1, token="old", device_info="iPhone")

        outcome = ledger.rotate(old_token="old", user_id=1, new_token="new")

        assert outcome.ok
        assert outcome.record.device_info == "iPhone"
        assert ledger.get("old").revoked is True
        assert ledger.is_valid("new") is True

    @pytest.mark.parametrize(
        ("prepare", "expected"),
        [
            ("missing", RotationResult.NOT_FOUND),
            ("other_user", RotationResult.NOT_FOUND),
            ("revoked", RotationResult.REVOKED),
            ("expired", RotationResult.EXPIRED),
        ],
    )
    def test_rejections_insert_nothing(self, ledger, clock, prepare, expected):
        if prepare != "missing":
            owner = 2 if prepare == "other_user" else 1
            ledger.issue(user_id=owner, token="old")
        if prepare == "revoked":
            ledger.revoke("old")
        if prepare == "expired":
            clock.advance(days=7)

        outcome = ledger.rotate(old_token="old", user_id=1, new_token="new")

        assert outcome.result is expected
        assert ledger.get("new") is None

    def test_second_rotation_loses(self, ledger):
        ledger.issue(user_id=1, token="old")
        assert ledger.rotate(old_token="old", user_id=1, new_token="n1").ok
        outcome = ledger.rotate(old_token="old", user_id=1, new_token="n2")
        assert outcome.result is RotationResult.REVOKED

    def test_concurrent_rotations_have_a_single_winner(self, ledger):
        ledger.issue(user_id=1, token="old")
        barrier = threading.Barrier(6)
        results: list[RotationResult] = []

        def worker(i: int) -> None:
            barrier.wait()
            results.append(ledger.rotate(old_token="old", user_id=1, new_token=f"new-{i}").result)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(6)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(RotationResult.OK) == 1
        assert results.count(RotationResult.REVOKED) == 5
        winners = [f"new-{i}" for i in range(6) if ledger.get(f"new-{i}") is not None]
        assert len(winners) == 1


def test_cleanup_on_issue_drops_stale_records(r, clock):
    ledger = RedisRefreshTokenLedger(r=r, clock=clock)
    ledger.issue(user_id=1, token="old")
    ledger.revoke("old")

    ledger.issue(user_id=1, token="new")

    assert ledger.get("old") is None
    digest = RedisRefreshTokenLedger._digest("old")
    assert not r.sismember("rt:u:1", digest)
    assert r.zscore(EXPIRY_INDEX_KEY, digest) is None


def test_cleanup_failure_is_logged(r, clock, monkeypatch, caplog):
    ledger = RedisRefreshTokenLedger(r=r, clock=clock)

    def _down(*args, **kwargs):
        raise redis.ConnectionError("connection reset")

    monkeypatch.setattr(r, "smembers", _down)

    with caplog.at_level(logging.WARNING):
        view = ledger.issue(user_id=1, token="rt-1")

    assert view.token == "rt-1"
    assert any(getattr(rec, "event", None) == "ledger.cleanup_failed" for rec in caplog.records)


def test_purge_clamps_cutoff_and_cleans_indexes(ledger, r, clock):
    ledger.issue(user_id=1, token="expired")
    clock.advance(days=8)
    ledger.issue(user_id=1, token="live")

    removed = ledger.purge_expired_before(clock.now + timedelta(days=365))

    assert removed == 1
    assert ledger.get("expired") is None
    assert ledger.is_valid("live") is True
    assert r.zcard(EXPIRY_INDEX_KEY) == 1
    assert r.scard("rt:u:1") == 1


def test_count_reads_the_expiry_index_without_deleting(ledger, r, clock):
    ledger.issue(user_id=1, token="expired")
    clock.advance(days=8)
    ledger.issue(user_id=1, token="live")

    assert ledger.count_expired_before(clock.now + timedelta(days=365)) == 1
    assert ledger.count_expired_before(clock.now - timedelta(days=3)) == 0
    assert r.zcard(EXPIRY_INDEX_KEY) == 2
