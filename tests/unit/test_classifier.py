"""
Unit tests for rule-based classification and importance scoring.
"""

import pytest

from tiered_memory.memory.classifier import (
    classify_memory,
    importance_label,
    normalize_text,
    score_importance
)
from tiered_memory.models.schemas import ImportanceLevel, MemoryClassification


class TestClassifyMemory:
    """First matching rule wins; everything else is conversational."""

    @pytest.mark.parametrize("text", [
        "My name is Sam, I live in Austin",
        "I am 34 years old",
        "I work as a nurse",
        "My favorite food is ramen",
        "I like jazz",
    ])
    def test_self_descriptive_text_is_conscious_info(self, text):
        assert classify_memory(text) == MemoryClassification.CONSCIOUS_INFO

    @pytest.mark.parametrize("text, expected", [
        ("The deadline is next Friday", MemoryClassification.ESSENTIAL),
        ("We need to renew the certificate", MemoryClassification.ESSENTIAL),
        ("I'm working on the billing migration", MemoryClassification.CONTEXTUAL),
        ("See docs for the retry settings", MemoryClassification.REFERENCE),
        ("My sister's wedding is in June", MemoryClassification.PERSONAL),
        ("What a nice afternoon", MemoryClassification.CONVERSATIONAL),
    ])
    def test_rules(self, text, expected):
        assert classify_memory(text) == expected

    def test_conscious_info_has_priority(self):
        """A self-descriptive statement wins over a later rule that also matches."""
        assert classify_memory("My name is Ana and the deadline is today") == MemoryClassification.CONSCIOUS_INFO

    def test_case_and_whitespace_insensitive(self):
        assert classify_memory("  MY   NAME   IS   Ana ") == MemoryClassification.CONSCIOUS_INFO

    def test_empty_text(self):
        assert classify_memory("") == MemoryClassification.CONVERSATIONAL


class TestScoreImportance:
    """Triggers raise the score to their floor; the result stays in [0.4, 0.99]."""

    @pytest.mark.parametrize("text", [
        "You must call the bank",
        "This is important",
        "A critical bug in production",
    ])
    def test_urgent_words_score_at_least_090(self, text):
        assert score_importance(text) >= 0.90

    @pytest.mark.parametrize("text, expected", [
        ("Just chatting", 0.6),
        ("Remember the milk", 0.80),
        ("I love sushi", 0.75),
        ("The deadline is tomorrow", 0.85),
        ("Critical: remember the deadline", 0.90),
    ])
    def test_floor_values(self, text, expected):
        assert score_importance(text) == pytest.approx(expected)

    def test_floors_do_not_add_up(self):
        assert score_importance("important critical must remember deadline") == pytest.approx(0.90)

    @pytest.mark.parametrize("text", [
        "",
        "hello",
        "must must must",
        "My favorite deadline is today and it is critical",
        "x" * 5000,
    ])
    def test_score_range(self, text):
        assert 0.4 <= score_importance(text) <= 0.99


class TestImportanceLabel:

    @pytest.mark.parametrize("score, expected", [
        (0.97, ImportanceLevel.CRITICAL),
        (0.90, ImportanceLevel.HIGH),
        (0.70, ImportanceLevel.MEDIUM),
        (0.50, ImportanceLevel.LOW),
    ])
    def test_labels(self, score, expected):
        assert importance_label(score) == expected


def test_normalize_text():
    assert normalize_text("  a \n\t b  ") == "a b"
    assert normalize_text(None) == ""
