"""Tests for the retry policy."""

import asyncio
import email.utils
from unittest.mock import AsyncMock, patch

import pytest

from inup.common.retry import RetryableStatus, RetryPolicy, parse_retry_after


def _transient(exc):
    return isinstance(exc, asyncio.TimeoutError)


class TestParseRetryAfter:
    """Tests for Retry-After header parsing."""

    def test_seconds(self):
        assert parse_retry_after("3") == 3.0
        assert parse_retry_after(" 1.5 ") == 1.5

    def test_negative_clamps_to_zero(self):
        assert parse_retry_after("-4") == 0.0

    def test_http_date(self):
        now = 1_700_000_000.0
        header = email.utils.formatdate(now + 10, usegmt=True)
        assert parse_retry_after(header, now=now) == pytest.approx(10.0, abs=1.0)

    @pytest.mark.parametrize("value", [None, "", "soon"])
    def test_unparseable(self, value):
        assert parse_retry_after(value) is None


class TestRetryPolicy:
    """Tests for RetryPolicy construction and delays."""

    def test_requires_timeouts(self):
        with pytest.raises(ValueError):
            RetryPolicy(())

    def test_rejects_negative_values(self):
        with pytest.raises(ValueError):
            RetryPolicy((1.0, -1.0))
        with pytest.raises(ValueError):
            RetryPolicy((1.0,), (-0.5,))

    def test_properties(self):
        policy = RetryPolicy((4, 8), (0.25,))
        assert policy.timeouts == (4.0, 8.0)
        assert policy.attempts == 2
        assert policy.shortest_timeout == 4.0

    def test_delay_table_reuses_last_entry(self):
        policy = RetryPolicy((1, 1, 1, 1), (0.1, 0.2))
        assert [policy.delay_for(i) for i in range(3)] == [0.1, 0.2, 0.2]

    def test_empty_delay_table_means_no_sleep(self):
        assert RetryPolicy((1, 1)).delay_for(0) == 0.0

    def test_retry_after_wins_when_longer(self):
        policy = RetryPolicy((4, 8), (0.25,))
        assert policy.delay_for(0, retry_after=2.0) == 2.0
        assert policy.delay_for(0, retry_after=0.1) == 0.25

    def test_retry_after_is_capped(self):
        policy = RetryPolicy((4, 8), (0.25,))
        assert policy.delay_for(0, retry_after=120.0) == 8.0


class TestAttempt:
    """Tests for RetryPolicy.attempt."""

    def test_first_attempt_success(self):
        policy = RetryPolicy((1, 2))
        operation = AsyncMock(return_value="1.0.0")

        assert asyncio.run(policy.attempt(operation, _transient)) == "1.0.0"
        operation.assert_awaited_once_with(0, 1.0)

    def test_each_attempt_gets_its_timeout(self):
        policy = RetryPolicy((1, 2, 3))
        seen = []

        async def operation(index, timeout):
            seen.append((index, timeout))
            raise asyncio.TimeoutError()

        assert asyncio.run(policy.attempt(operation, _transient)) is None
        assert seen == [(0, 1.0), (1, 2.0), (2, 3.0)]

    def test_retries_transient_then_succeeds(self):
        policy = RetryPolicy((1, 2))
        operation = AsyncMock(side_effect=[asyncio.TimeoutError(), "2.0.0"])

        assert asyncio.run(policy.attempt(operation, _transient)) == "2.0.0"
        assert operation.await_count == 2

    def test_retryable_status_exhausts_budget(self):
        policy = RetryPolicy((1, 2))
        operation = AsyncMock(side_effect=RetryableStatus(503))

        assert asyncio.run(policy.attempt(operation, _transient)) is None
        assert operation.await_count == 2

    def test_non_retryable_exception_stops_immediately(self):
        policy = RetryPolicy((1, 2, 3))
        operation = AsyncMock(side_effect=KeyError("boom"))

        assert asyncio.run(policy.attempt(operation, _transient)) is None
        assert operation.await_count == 1

    def test_none_result_is_not_retried(self):
        policy = RetryPolicy((1, 2))
        operation = AsyncMock(return_value=None)

        assert asyncio.run(policy.attempt(operation, _transient)) is None
        assert operation.await_count == 1

    def test_sleeps_between_attempts(self):
        policy = RetryPolicy((1, 2, 3), (0.25, 0.75))
        operation = AsyncMock(side_effect=[RetryableStatus(429, retry_after=2.0), asyncio.TimeoutError(), "ok"])

        with patch("inup.common.retry.asyncio.sleep", new_callable=AsyncMock) as sleep:
            assert asyncio.run(policy.attempt(operation, _transient)) == "ok"

        assert [c.args[0] for c in sleep.await_args_list] == [2.0, 0.75]
