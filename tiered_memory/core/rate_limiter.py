"""
Rate limiting and retries for the extraction model.

Keeps Gemini calls within the configured requests-per-minute budget and
retries rate-limit errors with exponential backoff. Every other failure is
raised to the extractor, which treats it as a failed extraction.
"""

import asyncio
import logging
import time
from functools import wraps
from typing import Callable, Dict

from tenacity import (
    AsyncRetrying,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type
)
import google.generativeai as genai

from tiered_memory.core.config import Settings
from tiered_memory.core.exceptions import (
    RateLimitError,
    APIQuotaError,
    TransientExternalError
)

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Per-minute request budget with a minimum spacing between calls.

    One limiter is owned by each extractor instance.
    """

    def __init__(self, max_requests_per_minute: int = 15):
        """
        Initialize rate limiter.

        Args:
            max_requests_per_minute: Maximum requests allowed per minute
        """
        self.max_requests_per_minute = max(1, max_requests_per_minute)
        self.requests: Dict[int, int] = {}  # minute -> request_count
        self.last_request_time = 0.0
        self.min_interval = 60.0 / self.max_requests_per_minute
        self._lock = asyncio.Lock()

    def _current_minute(self) -> int:
        return int(time.time() // 60)

    def requests_this_minute(self) -> int:
        """Requests recorded in the current minute."""
        current_minute = self._current_minute()
        self.requests = {minute: count for minute, count in self.requests.items()
                         if minute >= current_minute}
        return self.requests.get(current_minute, 0)

    def can_make_request(self) -> bool:
        return self.requests_this_minute() < self.max_requests_per_minute

    def seconds_until_available(self) -> float:
        """Seconds until the next minute window opens, 0 if a request fits now."""
        if self.can_make_request():
            return 0.0
        return 60.0 - (time.time() % 60)

    async def acquire(self) -> None:
        """
        Wait until a request fits the budget, then record it.

        Callers are served one at a time, so concurrent workers cannot all
        pass the budget check before any of them is recorded.
        """
        async with self._lock:
            time_since_last = time.time() - self.last_request_time
            if time_since_last < self.min_interval:
                wait_time = self.min_interval - time_since_last
                logger.debug(f"Rate limiting: waiting {wait_time:.2f}s")
                await asyncio.sleep(wait_time)

            if not self.can_make_request():
                wait_time = self.seconds_until_available()
                logger.warning(f"Rate limit reached, waiting {wait_time:.1f}s")
                await asyncio.sleep(wait_time)

            self.last_request_time = time.time()
            current_minute = self._current_minute()
            self.requests[current_minute] = self.requests.get(current_minute, 0) + 1


def handle_gemini_errors(func: Callable) -> Callable:
    """
    Decorator mapping Gemini client errors onto pipeline exceptions.

    Args:
        func: Coroutine function to wrap

    Returns:
        Callable: Wrapped coroutine function
    """
    @wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except TransientExternalError:
            raise
        except Exception as e:
            error_message = str(e).lower()

            if "quota exceeded" in error_message or "billing" in error_message:
                logger.error(f"Gemini quota exhausted: {e}")
                raise APIQuotaError(f"API quota exhausted: {e}") from e

            if "quota" in error_message or "rate limit" in error_message or "429" in error_message:
                logger.warning(f"Gemini rate limit hit: {e}")
                raise RateLimitError(f"API rate limit exceeded: {e}") from e

            logger.error(f"Gemini API call failed: {e}")
            raise TransientExternalError(f"Gemini API call failed: {e}") from e

    return wrapper


@handle_gemini_errors
async def _generate_json(
    model_name: str,
    system_instruction: str,
    prompt: str,
    temperature: float
) -> str:
    model = genai.GenerativeModel(model_name, system_instruction=system_instruction)
    response = await model.generate_content_async(
        prompt,
        generation_config=genai.types.GenerationConfig(
            temperature=temperature,
            response_mime_type="application/json",
            candidate_count=1
        )
    )
    return response.text


async def call_gemini_with_retry(
    system_instruction: str,
    prompt: str,
    settings: Settings,
    limiter: RateLimiter
) -> str:
    """
    Call Gemini for a JSON completion with rate limiting and retries.

    Args:
        system_instruction: System role text
        prompt: User prompt
        settings: Application settings (model, retries, temperature)
        limiter: Rate limiter owned by the caller

    Returns:
        str: Raw response text

    Raises:
        RateLimitError: If the rate limit persists after all retries
        APIQuotaError: If the API quota is exhausted
        TransientExternalError: For any other API failure

    Example:
        >>> text = await call_gemini_with_retry(
        ...     "You transform conversations...", prompt, settings, RateLimiter(15)
        ... )
    """
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(max(1, settings.gemini_max_retries)),
        wait=wait_exponential(multiplier=1, min=2, max=30),
        retry=retry_if_exception_type(RateLimitError),
        reraise=True
    ):
        with attempt:
            await limiter.acquire()
            logger.debug(f"Calling Gemini API: {settings.gemini_model}")
            return await _generate_json(
                settings.gemini_model,
                system_instruction,
                prompt,
                settings.gemini_temperature
            )
