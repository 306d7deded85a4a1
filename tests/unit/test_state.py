"""Unit tests for ExportJobStore."""

import pytest

from spender_export.service.models import CustomerRow, ExportSession
from spender_export.service.state import ExportJobStore


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def rows(*emails):
    return [CustomerRow(name=email.split("@")[0], email=email) for email in emails]


class TestExportJobStore:
    """Tests for token scoped session storage."""

    def setup_method(self):
        self.clock = FakeClock()
        self.store = ExportJobStore(ttl_seconds=60, clock=self.clock)
        self.token = self.store.issue_token()
        self.store.start(self.token, ExportSession(total_customers=3, total_batches=2))

    def test_tokens_must_be_issued(self):
        assert self.store.is_valid(self.token)
        assert not self.store.is_valid("forged")
        assert not self.store.is_valid(None)

    def test_redelivered_batch_replaces_rows(self):
        self.store.store_batch(self.token, 0, rows("a@x.io", "b@x.io"))
        processed = self.store.store_batch(self.token, 0, rows("a@x.io", "b@x.io"))
        assert processed == 2

    def test_rows_follow_batch_order(self):
        self.store.store_batch(self.token, 1, rows("c@x.io"))
        self.store.store_batch(self.token, 0, rows("a@x.io", "b@x.io"))
        assert [row.email for row in self.store.rows(self.token)] == ["a@x.io", "b@x.io", "c@x.io"]
        assert self.store.get_session(self.token).current_batch == 2

    def test_sessions_expire(self):
        self.clock.now += 61
        assert self.store.get_session(self.token) is None
        with pytest.raises(KeyError):
            self.store.store_batch(self.token, 0, rows("a@x.io"))

    def test_writes_extend_expiry(self):
        self.clock.now += 50
        self.store.store_batch(self.token, 0, rows("a@x.io"))
        self.clock.now += 50
        assert self.store.get_session(self.token) is not None

    def test_clear(self):
        self.store.store_batch(self.token, 0, rows("a@x.io"))
        self.store.clear(self.token)
        assert self.store.rows(self.token) == []
        assert self.store.get_session(self.token) is None

    def test_tokens_expire_when_unused(self):
        self.clock.now += 61
        assert not self.store.is_valid(self.token)

    def test_use_extends_token_expiry(self):
        self.clock.now += 50
        assert self.store.is_valid(self.token)
        self.clock.now += 50
        assert self.store.is_valid(self.token)

    def test_issuing_a_token_sweeps_expired_ones(self):
        self.store.store_batch(self.token, 0, rows("a@x.io"))
        self.clock.now += 61

        fresh = self.store.issue_token()

        assert self.store.token_count == 1
        assert self.store.is_valid(fresh)
        assert not self.store.is_valid(self.token)
        assert self.store._entries == {}
