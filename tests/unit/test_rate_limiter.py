"""
Unit tests for the model rate limiter, error mapping and retries.
"""

import asyncio
import time

import pytest

from tiered_memory.core import rate_limiter
from tiered_memory.core.exceptions import APIQuotaError, RateLimitError, TransientExternalError
from tiered_memory.core.rate_limiter import RateLimiter, call_gemini_with_retry, handle_gemini_errors

from tests.helpers import make_settings


class TestRateLimiter:

    async def test_acquire_records_requests(self):
        limiter = RateLimiter(max_requests_per_minute=6000)
        await limiter.acquire()
        await limiter.acquire()
        assert limiter.requests_this_minute() == 2

    async def test_concurrent_acquires_are_spaced(self):
        limiter = RateLimiter(max_requests_per_minute=600)
        granted = []

        async def take():
            await limiter.acquire()
            granted.append(time.monotonic())

        await asyncio.gather(*(take() for _ in range(3)))

        granted.sort()
        assert sum(limiter.requests.values()) == 3
        assert all(later - earlier >= 0.09 for earlier, later in zip(granted, granted[1:]))

    def test_budget_exhausted(self):
        limiter = RateLimiter(max_requests_per_minute=2)
        limiter.requests[limiter._current_minute()] = 2
        assert not limiter.can_make_request()
        assert 0.0 < limiter.seconds_until_available() <= 60.0

    def test_fresh_limiter_has_budget(self):
        limiter = RateLimiter(max_requests_per_minute=15)
        assert limiter.can_make_request()
        assert limiter.seconds_until_available() == 0.0
        assert limiter.min_interval == pytest.approx(4.0)


class TestHandleGeminiErrors:

    @pytest.mark.parametrize("message, expected", [
        ("Quota exceeded for project", APIQuotaError),
        ("billing account disabled", APIQuotaError),
        ("429 Too Many Requests", RateLimitError),
        ("Rate limit reached", RateLimitError),
        ("socket closed", TransientExternalError),
    ])
    async def test_error_mapping(self, message, expected):
        @handle_gemini_errors
        async def failing():
            raise RuntimeError(message)

        with pytest.raises(expected) as info:
            await failing()
        assert type(info.value) is expected

    async def test_success_passes_through(self):
        @handle_gemini_errors
        async def succeeding():
            return '{"memories": []}'

        assert await succeeding() == '{"memories": []}'


class TestCallGeminiWithRetry:

    async def test_returns_response_text(self, monkeypatch):
        async def fake_generate(model_name, system_instruction, prompt, temperature):
            assert model_name == "gemini-1.5-flash"
            return '{"memories": []}'

        monkeypatch.setattr(rate_limiter, "_generate_json", fake_generate)

        text = await call_gemini_with_retry("system", "prompt", make_settings(), RateLimiter(6000))
        assert text == '{"memories": []}'

    async def test_rate_limit_raised_after_last_attempt(self, monkeypatch):
        calls = []

        async def rate_limited(*args):
            calls.append(args)
            raise RateLimitError("API rate limit exceeded")

        monkeypatch.setattr(rate_limiter, "_generate_json", rate_limited)

        with pytest.raises(RateLimitError):
            await call_gemini_with_retry("system", "prompt", make_settings(gemini_max_retries=1), RateLimiter(6000))
        assert len(calls) == 1

    async def test_other_errors_not_retried(self, monkeypatch):
        calls = []

        async def broken(*args):
            calls.append(args)
            raise TransientExternalError("Gemini API call failed")

        monkeypatch.setattr(rate_limiter, "_generate_json", broken)

        with pytest.raises(TransientExternalError):
            await call_gemini_with_retry("system", "prompt", make_settings(gemini_max_retries=3), RateLimiter(6000))
        assert len(calls) == 1
