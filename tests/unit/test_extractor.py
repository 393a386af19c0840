"""
Unit tests for memory extraction: model path, repair and heuristic fallback.
"""

import pytest

from tiered_memory.core.exceptions import RateLimitError
from tiered_memory.memory.decoder import FailureReason, RawMemory
from tiered_memory.memory.extractor import SYSTEM_INSTRUCTION, MemoryExtractor
from tiered_memory.models.schemas import ConversationTurn, MemoryClassification

from tests.helpers import FakeModel, make_settings, model_reply


def make_turn(user_input="My name is Sam, I live in Austin", ai_output="Nice to meet you, Sam"):
    return ConversationTurn(user_input=user_input, ai_output=ai_output, user_id="user123", chat_id="chat-1")


class TestHeuristicPath:
    """Without a model every turn becomes one heuristic memory."""

    async def test_sam_turn(self, memory_extractor):
        result = await memory_extractor.extract_memories(make_turn())

        assert len(result.memories) == 1
        memory = result.memories[0]
        assert memory.content == "My name is Sam, I live in Austin Nice to meet you, Sam"
        assert memory.summary == memory.content
        assert memory.searchable_text == memory.content.lower()
        assert memory.classification == MemoryClassification.CONSCIOUS_INFO
        assert memory.importance_score == pytest.approx(0.6)
        assert memory.is_conscious
        assert "austin" in memory.keywords
        assert "Sam" in [entity.value for entity in memory.entities]

    def test_summary_truncated(self, memory_extractor):
        memory = memory_extractor.heuristic_memories(make_turn("word " * 100, ""))[0]
        assert len(memory.summary) == 180

    def test_blank_turn_yields_nothing(self, memory_extractor):
        assert memory_extractor.heuristic_memories(make_turn("   ", "")) == []

    def test_high_importance_is_conscious(self, memory_extractor):
        memory = memory_extractor.heuristic_memories(make_turn("The deadline is tomorrow", "Noted"))[0]
        assert memory.classification == MemoryClassification.ESSENTIAL
        assert memory.importance_score == pytest.approx(0.85)
        assert memory.is_conscious

    def test_ordinary_turn_is_not_conscious(self, memory_extractor):
        memory = memory_extractor.heuristic_memories(make_turn("What a nice afternoon", "Indeed"))[0]
        assert memory.classification == MemoryClassification.CONVERSATIONAL
        assert not memory.is_conscious

    async def test_unavailable_model_is_reported(self, memory_extractor):
        result = await memory_extractor.request_extraction(make_turn())
        assert result.reason == FailureReason.UNAVAILABLE


class TestModelPath:

    async def test_model_memories_are_used(self, test_settings):
        model = FakeModel(model_reply({
            "content": "Sam lives in Austin",
            "summary": "Lives in Austin",
            "searchable_text": "sam austin",
            "classification": "personal",
            "importance_score": 0.7,
            "entities": [{"type": "place", "value": "Austin"}],
            "keywords": ["austin"],
            "is_conscious": False
        }))
        extractor = MemoryExtractor(test_settings, completion_fn=model)

        result = await extractor.extract_memories(make_turn())

        memory = result.memories[0]
        assert memory.summary == "Lives in Austin"
        assert memory.classification == MemoryClassification.PERSONAL
        assert memory.importance_score == pytest.approx(0.7)
        assert [(e.type, e.value) for e in memory.entities] == [("place", "Austin")]
        assert not memory.is_conscious

        system_instruction, prompt = model.calls[0]
        assert system_instruction == SYSTEM_INSTRUCTION
        assert "User Input: My name is Sam, I live in Austin" in prompt
        assert "AI Output: Nice to meet you, Sam" in prompt

    async def test_model_may_return_no_memories(self, test_settings):
        extractor = MemoryExtractor(test_settings, completion_fn=FakeModel(model_reply()))
        result = await extractor.extract_memories(make_turn())
        assert result.memories == []

    async def test_multiple_memories(self, test_settings):
        extractor = MemoryExtractor(
            test_settings,
            completion_fn=FakeModel(model_reply({"content": "Name is Sam"}, {"content": "Lives in Austin"}))
        )
        result = await extractor.extract_memories(make_turn())
        assert [memory.content for memory in result.memories] == ["Name is Sam", "Lives in Austin"]

    @pytest.mark.parametrize("reply", [
        "not json at all",
        '{"items": []}',
        "",
        RateLimitError("API rate limit exceeded"),
        RuntimeError("connection reset"),
    ])
    async def test_failures_fall_back_to_heuristics(self, test_settings, reply):
        extractor = MemoryExtractor(test_settings, completion_fn=FakeModel(reply))

        result = await extractor.extract_memories(make_turn())

        assert len(result.memories) == 1
        assert result.memories[0].content == "My name is Sam, I live in Austin Nice to meet you, Sam"

    async def test_timeout_falls_back_to_heuristics(self):
        settings = make_settings(gemini_timeout=0.01)
        extractor = MemoryExtractor(settings, completion_fn=FakeModel(model_reply(), delay=1.0))

        failure = await extractor.request_extraction(make_turn())
        assert failure.reason == FailureReason.TIMEOUT

        result = await extractor.extract_memories(make_turn())
        assert len(result.memories) == 1

    def test_prompt_lists_classifications_and_context(self, memory_extractor):
        prompt = memory_extractor.build_prompt("hi", "hello", context="Project kickoff")
        for label in ("conscious-info", "essential", "contextual", "conversational", "reference", "personal"):
            assert label in prompt
        assert "Context:\nProject kickoff" in prompt


class TestRepairMemory:

    def test_missing_fields_get_defaults(self, memory_extractor):
        memory = memory_extractor.repair_memory(RawMemory(), make_turn())
        assert memory.content == "My name is Sam, I live in Austin Nice to meet you, Sam"
        assert memory.summary == memory.content
        assert memory.searchable_text == memory.content.lower()
        assert memory.classification == MemoryClassification.CONSCIOUS_INFO
        assert memory.importance_score == pytest.approx(0.6)

    def test_unknown_classification_is_reclassified(self, memory_extractor):
        memory = memory_extractor.repair_memory(
            RawMemory(content="The deadline is Friday", classification="urgent-ish"),
            make_turn()
        )
        assert memory.classification == MemoryClassification.ESSENTIAL

    @pytest.mark.parametrize("raw_score, expected", [(1.5, 0.99), (-0.3, 0.0), (0.42, 0.42)])
    def test_importance_clamped(self, memory_extractor, raw_score, expected):
        memory = memory_extractor.repair_memory(
            RawMemory(content="Plain fact", importance_score=raw_score),
            make_turn()
        )
        assert memory.importance_score == pytest.approx(expected)

    def test_nan_importance_is_rescored(self, memory_extractor):
        memory = memory_extractor.repair_memory(
            RawMemory(content="This is critical", importance_score=float("nan")),
            make_turn()
        )
        assert memory.importance_score == pytest.approx(0.90)

    def test_long_summary_truncated(self, memory_extractor):
        memory = memory_extractor.repair_memory(RawMemory(content="x", summary="s" * 500), make_turn())
        assert len(memory.summary) == 180

    def test_malformed_entities_and_keywords_dropped(self, memory_extractor):
        memory = memory_extractor.repair_memory(
            RawMemory(
                content="Plain fact",
                entities=[{"type": "person", "value": "Sam"}, {"type": "person"}, "Austin", {"type": "", "value": "x"}],
                keywords=["austin", " austin ", 7, "", "texas"]
            ),
            make_turn()
        )
        assert [(e.type, e.value) for e in memory.entities] == [("person", "Sam")]
        assert memory.keywords == ["austin", "texas"]

    def test_conscious_flag_from_model_or_rules(self, memory_extractor):
        flagged = memory_extractor.repair_memory(
            RawMemory(content="Plain fact", classification="conversational", importance_score=0.2, is_conscious=True),
            make_turn()
        )
        by_importance = memory_extractor.repair_memory(
            RawMemory(content="Plain fact", classification="conversational", importance_score=0.85),
            make_turn()
        )
        neither = memory_extractor.repair_memory(
            RawMemory(content="Plain fact", classification="conversational", importance_score=0.84),
            make_turn()
        )
        assert flagged.is_conscious
        assert by_importance.is_conscious
        assert not neither.is_conscious
