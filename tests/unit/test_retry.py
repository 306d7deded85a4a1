"""Unit tests for RetryPolicy."""

import pytest

from spender_export.errors import TransportError
from spender_export.retry import RetryPolicy


class TestRetryPolicy:
    """Tests for the exponential backoff policy."""

    def test_delays_double_per_retry(self):
        policy = RetryPolicy(max_retries=3, base_delay_ms=2000)
        delays = [policy.decide(count).delay_ms for count in range(3)]
        assert delays == [2000, 4000, 8000]

    def test_gives_up_at_the_boundary(self):
        policy = RetryPolicy(max_retries=3, base_delay_ms=2000)
        decision = policy.decide(3, TransportError("Network error: boom"))
        assert decision.retry is False
        assert decision.attempt == 4

    def test_retry_decision_reports_attempt_number(self):
        policy = RetryPolicy(max_retries=2, base_delay_ms=100)
        assert policy.decide(0).attempt == 1
        assert policy.decide(1).attempt == 2

    def test_zero_retries_fails_immediately(self):
        policy = RetryPolicy(max_retries=0, base_delay_ms=100)
        assert policy.decide(0).retry is False

    @pytest.mark.parametrize("kwargs", [{"max_retries": -1}, {"base_delay_ms": 0}])
    def test_rejects_invalid_configuration(self, kwargs):
        with pytest.raises(ValueError):
            RetryPolicy(**kwargs)
