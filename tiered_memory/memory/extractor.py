"""
Memory extraction from conversation turns.

Asks Gemini for structured memories under a strict JSON contract and falls
back to deterministic heuristics (classifier, importance scorer, harvester)
whenever the model path fails for any reason. Every field from either path
is validated and repaired before it leaves the extractor.
"""

import asyncio
import logging
import math
import time
from typing import Awaitable, Callable, List, Optional

import google.generativeai as genai

from tiered_memory.core.config import Settings
from tiered_memory.core.rate_limiter import RateLimiter, call_gemini_with_retry
from tiered_memory.memory.classifier import (
    classify_memory,
    normalize_text,
    score_importance,
    MAX_IMPORTANCE
)
from tiered_memory.memory.decoder import (
    DecodeFailure,
    DecodeResult,
    FailureReason,
    RawMemory,
    decode_extraction_response
)
from tiered_memory.memory.harvester import extract_entities
from tiered_memory.models.schemas import (
    CandidateMemory,
    ConversationTurn,
    Entity,
    ExtractionResult,
    MemoryClassification,
    MAX_KEYWORDS,
    SUMMARY_MAX_LENGTH
)

logger = logging.getLogger(__name__)

# (system_instruction, prompt) -> raw response text
CompletionFn = Callable[[str, str], Awaitable[str]]

SYSTEM_INSTRUCTION = (
    "You transform conversations into structured long-term memories for retrieval."
)

CONSCIOUS_IMPORTANCE = 0.85


class MemoryExtractor:
    """
    Extracts candidate memories from a conversation turn.

    The model call is optional: without a Gemini API key (or an injected
    completion function) every turn goes through the heuristic path.
    """

    def __init__(self, settings: Settings, completion_fn: Optional[CompletionFn] = None):
        """
        Initialize the memory extractor.

        Args:
            settings: Application settings
            completion_fn: Replaces the Gemini call, mainly for tests
        """
        self.settings = settings
        self.rate_limiter = RateLimiter(max_requests_per_minute=settings.rate_limit_per_minute)

        if completion_fn is None and settings.gemini_api_key:
            genai.configure(api_key=settings.gemini_api_key)
            completion_fn = self._call_gemini

        self.completion_fn = completion_fn

    async def _call_gemini(self, system_instruction: str, prompt: str) -> str:
        return await call_gemini_with_retry(
            system_instruction,
            prompt,
            self.settings,
            self.rate_limiter
        )

    def build_prompt(self, user_input: str, ai_output: str, context: Optional[str] = None) -> str:
        """
        Build the extraction prompt for one turn.

        Returns:
            str: Prompt text
        """
        classifications = " | ".join(c.value for c in MemoryClassification)
        sections = [
            "You are a Memory Extraction Agent. Convert the conversation into structured memories.",
            "Return strict JSON { memories: [ { content, summary, searchable_text, classification, "
            "importance_score, entities, keywords, is_conscious } ] }",
            f"Classification: {classifications}",
            "Importance score: 0.0 - 1.0",
            "Entities: [{ type, value }], Keywords: [string]",
            "The summary should be concise and human-readable.",
            f"Context:\n{context}\n" if context else "",
            f"User Input: {user_input}",
            f"AI Output: {ai_output}",
        ]
        return "\n\n".join(section for section in sections if section)

    async def request_extraction(self, turn: ConversationTurn) -> DecodeResult:
        """
        Run the model path for one turn.

        Transport errors, timeouts and undecodable responses all come back
        as a DecodeFailure; this method does not raise.

        Args:
            turn: Conversation turn

        Returns:
            DecodeResult: Decoded payload or failure details
        """
        if self.completion_fn is None:
            return DecodeFailure(FailureReason.UNAVAILABLE, "No extraction model configured")

        prompt = self.build_prompt(turn.user_input, turn.ai_output, turn.context)

        try:
            raw = await asyncio.wait_for(
                self.completion_fn(SYSTEM_INSTRUCTION, prompt),
                timeout=self.settings.gemini_timeout
            )
        except asyncio.TimeoutError:
            return DecodeFailure(
                FailureReason.TIMEOUT,
                f"Model call exceeded {self.settings.gemini_timeout}s"
            )
        except Exception as e:
            return DecodeFailure(FailureReason.TRANSPORT, f"{type(e).__name__}: {e}")

        return decode_extraction_response(raw)

    async def extract_memories(self, turn: ConversationTurn) -> ExtractionResult:
        """
        Extract candidate memories from a turn.

        Never raises: any unexpected error is logged and yields an empty
        result.

        Args:
            turn: Conversation turn

        Returns:
            ExtractionResult: Zero or more validated candidates

        Example:
            >>> extractor = MemoryExtractor(settings)
            >>> result = await extractor.extract_memories(ConversationTurn(
            ...     user_input="My name is Sam, I live in Austin",
            ...     ai_output="Nice to meet you, Sam",
            ...     user_id="user123"
            ... ))
            >>> result.memories[0].classification.value
            'conscious-info'
        """
        start_time = time.time()

        try:
            result = await self.request_extraction(turn)

            if result.ok:
                memories = [self.repair_memory(raw, turn) for raw in result.payload.memories]
                source = "model"
            else:
                if result.reason != FailureReason.UNAVAILABLE:
                    logger.warning(
                        f"Model extraction failed for chat {turn.chat_id} "
                        f"({result.reason.value}): {result.detail}"
                    )
                    if result.raw:
                        logger.debug(f"Raw response: {result.raw[:500]}")
                memories = self.heuristic_memories(turn)
                source = "heuristics"

            logger.info(
                f"Extracted {len(memories)} memories for user {turn.user_id} "
                f"via {source} in {time.time() - start_time:.2f}s"
            )
            return ExtractionResult(memories=memories)

        except Exception as e:
            logger.error(f"Memory extraction failed for user {turn.user_id}: {e}", exc_info=True)
            return ExtractionResult()

    def heuristic_memories(self, turn: ConversationTurn) -> List[CandidateMemory]:
        """
        Deterministic fallback: one memory from the whole turn.

        Args:
            turn: Conversation turn

        Returns:
            List[CandidateMemory]: A single candidate, or none for an empty turn
        """
        combined = f"{normalize_text(turn.user_input)} {normalize_text(turn.ai_output)}".strip()
        if not combined:
            return []

        classification = classify_memory(combined)
        importance = score_importance(combined)
        entities, keywords = extract_entities(combined)

        return [
            CandidateMemory(
                content=combined,
                summary=combined[:SUMMARY_MAX_LENGTH],
                searchable_text=combined.lower(),
                classification=classification,
                importance_score=importance,
                entities=entities,
                keywords=keywords,
                is_conscious=self._is_conscious(False, classification, importance)
            )
        ]

    def repair_memory(self, raw: RawMemory, turn: ConversationTurn) -> CandidateMemory:
        """
        Validate and repair one model-produced memory.

        Args:
            raw: Memory as decoded from the model response
            turn: Source turn, used for defaults

        Returns:
            CandidateMemory: Repaired candidate
        """
        content = (
            normalize_text(raw.content)
            or normalize_text(f"{turn.user_input} {turn.ai_output}")
        )
        summary = (normalize_text(raw.summary) or content)[:SUMMARY_MAX_LENGTH]
        searchable_text = (normalize_text(raw.searchable_text) or content).lower()

        try:
            classification = MemoryClassification(raw.classification)
        except ValueError:
            classification = classify_memory(content)

        importance = raw.importance_score
        if importance is None or math.isnan(importance):
            importance = score_importance(content)
        importance = min(MAX_IMPORTANCE, max(0.0, float(importance)))

        return CandidateMemory(
            content=content,
            summary=summary,
            searchable_text=searchable_text,
            classification=classification,
            importance_score=importance,
            entities=self._repair_entities(raw.entities),
            keywords=self._repair_keywords(raw.keywords),
            is_conscious=self._is_conscious(bool(raw.is_conscious), classification, importance)
        )

    @staticmethod
    def _is_conscious(flag: bool, classification: MemoryClassification, importance: float) -> bool:
        return (
            flag
            or classification == MemoryClassification.CONSCIOUS_INFO
            or importance >= CONSCIOUS_IMPORTANCE
        )

    @staticmethod
    def _repair_entities(entities) -> List[Entity]:
        repaired = []
        for item in entities or []:
            if not isinstance(item, dict):
                continue
            entity_type, value = item.get("type"), item.get("value")
            if isinstance(entity_type, str) and isinstance(value, str) and entity_type and value:
                repaired.append(Entity(type=entity_type, value=value))
        return repaired

    @staticmethod
    def _repair_keywords(keywords) -> List[str]:
        unique = {}
        for keyword in keywords or []:
            if isinstance(keyword, str) and keyword.strip():
                unique[keyword.strip()] = None
        return list(unique)[:MAX_KEYWORDS]
