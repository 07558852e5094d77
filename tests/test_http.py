from unittest.mock import AsyncMock, patch

import pytest

from newsdesk.utils.http import RateLimiter


class TestRateLimiter:
    def test_backoff_doubles_after_threshold_and_caps(self):
        limiter = RateLimiter(rate_limit=1, max_backoff=8, failure_threshold=2)
        limiter.report_failure("slow.example")
        assert limiter.delay("slow.example") == 1

        delays = []
        for _ in range(4):
            limiter.report_failure("slow.example")
            delays.append(limiter.delay("slow.example"))
        assert delays == [2, 4, 8, 8]
        assert limiter.failures("slow.example") == 5

    def test_success_resets_failures_and_decays_delay(self):
        limiter = RateLimiter(rate_limit=1, max_backoff=8, failure_threshold=1)
        for _ in range(3):
            limiter.report_failure("slow.example")
        assert limiter.delay("slow.example") == 8

        limiter.report_success("slow.example")
        assert limiter.failures("slow.example") == 0
        assert limiter.delay("slow.example") == pytest.approx(6.4)

    def test_delay_never_below_rate_limit(self):
        limiter = RateLimiter(rate_limit=2)
        limiter.report_success("fine.example")
        assert limiter.delay("fine.example") == 2

    def test_domains_are_independent(self):
        limiter = RateLimiter(rate_limit=1, failure_threshold=1)
        limiter.report_failure("a.example")
        assert limiter.failures("b.example") == 0
        assert limiter.delay("b.example") == 1

    @pytest.mark.asyncio
    async def test_first_request_does_not_wait(self):
        limiter = RateLimiter(rate_limit=5)
        with patch("newsdesk.utils.http.asyncio.sleep", new=AsyncMock()) as sleep:
            await limiter.acquire("new.example")
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_back_to_back_requests_wait(self):
        limiter = RateLimiter(rate_limit=5)
        with patch("newsdesk.utils.http.asyncio.sleep", new=AsyncMock()) as sleep:
            await limiter.acquire("busy.example")
            await limiter.acquire("busy.example")
            await limiter.acquire("other.example")
        assert sleep.await_count == 1
        waited = sleep.await_args.args[0]
        assert 0 < waited <= 5
