"""
Retry orchestrator tests.
"""

import sys
from pathlib import Path
from unittest.mock import Mock

import pytest
import requests

sys.path.insert(0, str(Path(__file__).parent.parent))

from conftest import FakeClock


def make_orchestrator(clock=None, **policy):
    from notion_mcp.rate_limiter import TokenBucket
    from notion_mcp.retry import RetryOrchestrator, RetryPolicy

    clock = clock or FakeClock()
    # A large bucket keeps admission waits out of the recorded sleeps
    bucket = TokenBucket(capacity=100, refill_rate=100, clock=clock)
    return RetryOrchestrator(bucket, RetryPolicy(**policy), clock=clock)


class TestRetryPolicy:
    """Test backoff calculation and validation."""

    def test_backoff_doubles_until_cap(self):
        from notion_mcp.retry import RetryPolicy

        policy = RetryPolicy(base_delay=1.0, max_delay=5.0)

        assert [policy.backoff(a) for a in range(5)] == [1.0, 2.0, 4.0, 5.0, 5.0]

    def test_rejects_negative_retries(self):
        from notion_mcp.retry import RetryPolicy

        with pytest.raises(ValueError):
            RetryPolicy(max_retries=-1)

    def test_rejects_cap_below_base(self):
        from notion_mcp.retry import RetryPolicy

        with pytest.raises(ValueError):
            RetryPolicy(base_delay=10.0, max_delay=1.0)


class TestRetryOrchestrator:
    """Test dispatch on error kinds."""

    def test_success_first_try(self):
        orchestrator = make_orchestrator()
        operation = Mock(return_value={"ok": True})

        assert orchestrator.run(operation) == {"ok": True}
        assert operation.call_count == 1

    def test_server_errors_exhaust_retries(self):
        """max_retries=3 means four invocations, then the last error is raised."""
        from notion_mcp.errors import NotionAPIError

        clock = FakeClock()
        orchestrator = make_orchestrator(clock, max_retries=3, base_delay=1.0, max_delay=30.0)
        error = NotionAPIError(500, "internal_server_error", "boom")
        operation = Mock(side_effect=error)

        with pytest.raises(NotionAPIError) as exc_info:
            orchestrator.run(operation)

        assert exc_info.value is error
        assert operation.call_count == 4
        assert clock.sleeps == [1.0, 2.0, 4.0]

    def test_recovers_after_transient_error(self):
        from notion_mcp.errors import NotionAPIError

        orchestrator = make_orchestrator()
        operation = Mock(side_effect=[NotionAPIError(503, "service_unavailable", ""), "done"])

        assert orchestrator.run(operation) == "done"
        assert operation.call_count == 2

    @pytest.mark.parametrize("status_code", [400, 401, 403, 404])
    def test_client_errors_are_not_retried(self, status_code):
        from notion_mcp.errors import NotionAPIError

        clock = FakeClock()
        orchestrator = make_orchestrator(clock)
        operation = Mock(side_effect=NotionAPIError(status_code, "bad", "bad"))

        with pytest.raises(NotionAPIError):
            orchestrator.run(operation)

        assert operation.call_count == 1
        assert clock.sleeps == []

    def test_local_errors_are_not_retried(self):
        from notion_mcp.errors import NotionConfigurationError

        orchestrator = make_orchestrator()
        operation = Mock(side_effect=NotionConfigurationError("missing"))

        with pytest.raises(NotionConfigurationError):
            orchestrator.run(operation)

        assert operation.call_count == 1

    def test_rate_limit_waits_retry_after(self):
        from notion_mcp.errors import NotionRateLimitError

        clock = FakeClock()
        orchestrator = make_orchestrator(clock)
        operation = Mock(side_effect=[
            NotionRateLimitError("rate_limited", "slow down", retry_after=2.5),
            "ok",
        ])

        assert orchestrator.run(operation) == "ok"
        assert clock.sleeps == [2.5]

    def test_rate_limit_default_wait(self):
        """A 429 without Retry-After waits 60 seconds."""
        from notion_mcp.errors import NotionRateLimitError

        clock = FakeClock()
        orchestrator = make_orchestrator(clock)
        operation = Mock(side_effect=[NotionRateLimitError("rate_limited", "slow down"), "ok"])

        orchestrator.run(operation)

        assert clock.sleeps == [60.0]

    def test_rate_limits_count_against_retries(self):
        from notion_mcp.errors import NotionRateLimitError

        orchestrator = make_orchestrator(max_retries=2)
        operation = Mock(side_effect=NotionRateLimitError("rate_limited", "", retry_after=1))

        with pytest.raises(NotionRateLimitError):
            orchestrator.run(operation)

        assert operation.call_count == 3

    def test_network_errors_are_retried(self):
        orchestrator = make_orchestrator(max_retries=1)
        operation = Mock(side_effect=[requests.exceptions.ConnectionError("reset"), "ok"])

        assert orchestrator.run(operation) == "ok"

    def test_max_retries_override(self):
        from notion_mcp.errors import NotionAPIError

        orchestrator = make_orchestrator(max_retries=5)
        operation = Mock(side_effect=NotionAPIError(502, "bad_gateway", ""))

        with pytest.raises(NotionAPIError):
            orchestrator.run(operation, max_retries=1)

        assert operation.call_count == 2

    def test_every_attempt_is_admitted_and_recorded(self):
        from notion_mcp.errors import NotionAPIError
        from notion_mcp.rate_limiter import TokenBucket
        from notion_mcp.retry import RetryOrchestrator, RetryPolicy
        from notion_mcp.usage import UsageTracker

        clock = FakeClock()
        bucket = Mock(wraps=TokenBucket(clock=clock))
        usage = UsageTracker(clock=clock)
        orchestrator = RetryOrchestrator(bucket, RetryPolicy(max_retries=2), clock=clock, usage=usage)
        operation = Mock(side_effect=NotionAPIError(500, "internal_server_error", ""))

        with pytest.raises(NotionAPIError):
            orchestrator.run(operation)

        assert bucket.acquire.call_count == 3
        assert usage.total_requests == 3
