"""
Shared test helpers: a scripted model stand-in and data builders.
"""

import asyncio
import json
from typing import List, Union

from tiered_memory.core.config import Settings
from tiered_memory.models.schemas import CandidateMemory, MemoryClassification


class FakeModel:
    """
    Scripted stand-in for the Gemini completion call.

    Each call pops the next scripted reply: a string is returned as the raw
    response, an exception instance is raised. The last reply repeats once
    the script is exhausted.
    """

    def __init__(self, *replies: Union[str, Exception], delay: float = 0.0):
        self.replies: List[Union[str, Exception]] = list(replies)
        self.delay = delay
        self.calls = []

    async def __call__(self, system_instruction: str, prompt: str) -> str:
        self.calls.append((system_instruction, prompt))
        if self.delay:
            await asyncio.sleep(self.delay)
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return reply


def model_reply(*memories: dict) -> str:
    """JSON response body in the extraction contract."""
    return json.dumps({"memories": list(memories)})


def make_settings(**overrides) -> Settings:
    """Settings for an isolated in-memory database without a model key."""
    values = {
        "database_url": "sqlite:///:memory:",
        "gemini_api_key": None,
        "extraction_workers": 2,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_candidate(
    content: str = "I work as a nurse in Denver",
    classification: MemoryClassification = MemoryClassification.CONVERSATIONAL,
    importance_score: float = 0.5,
    is_conscious: bool = False,
    summary: str = None
) -> CandidateMemory:
    return CandidateMemory(
        content=content,
        summary=summary or content,
        searchable_text=content.lower(),
        classification=classification,
        importance_score=importance_score,
        is_conscious=is_conscious
    )
