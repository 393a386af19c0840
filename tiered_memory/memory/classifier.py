"""
Rule-based memory classification and importance scoring.

Classification is an ordered tuple of (label, pattern) rules where the first
match wins. Importance scoring is independent: each trigger raises the score
to its floor, never adds to it.
"""

import re
from dataclasses import dataclass
from typing import Pattern, Tuple

from tiered_memory.models.schemas import ImportanceLevel, MemoryClassification

BASELINE_IMPORTANCE = 0.6
MIN_HEURISTIC_IMPORTANCE = 0.4
MAX_IMPORTANCE = 0.99

_WHITESPACE = re.compile(r"\s+")


def normalize_text(text) -> str:
    """Trim and collapse whitespace; None becomes an empty string."""
    return _WHITESPACE.sub(" ", str(text or "").strip())


@dataclass(frozen=True)
class ClassificationRule:
    """
    One classification rule.

    Attributes:
        label: Classification assigned when the rule matches
        pattern: Regex searched against the case-folded text
    """
    label: MemoryClassification
    pattern: Pattern[str]

    def matches(self, text: str) -> bool:
        return self.pattern.search(text) is not None


# Priority order matters: self-descriptive statements beat every other rule
CLASSIFICATION_RULES: Tuple[ClassificationRule, ...] = (
    ClassificationRule(
        MemoryClassification.CONSCIOUS_INFO,
        re.compile(r"my name is|i am .*years old|i work as|i live in|favorite|i like|i love")
    ),
    ClassificationRule(
        MemoryClassification.ESSENTIAL,
        re.compile(r"deadline|must|need to|important|priority|remember to")
    ),
    ClassificationRule(
        MemoryClassification.CONTEXTUAL,
        re.compile(r"working on|current project|today i|this week|context")
    ),
    ClassificationRule(
        MemoryClassification.REFERENCE,
        re.compile(r"see docs|snippet|example|stack overflow|reference")
    ),
    ClassificationRule(
        MemoryClassification.PERSONAL,
        re.compile(r"birthday|family|friend|wedding|vacation|life")
    ),
)

DEFAULT_CLASSIFICATION = MemoryClassification.CONVERSATIONAL


@dataclass(frozen=True)
class ImportanceTrigger:
    """Phrases that lift the importance score to at least `floor`."""
    floor: float
    phrases: Tuple[str, ...]

    def fires(self, text: str) -> bool:
        return any(phrase in text for phrase in self.phrases)


IMPORTANCE_TRIGGERS: Tuple[ImportanceTrigger, ...] = (
    ImportanceTrigger(0.90, ("must", "important", "critical")),
    ImportanceTrigger(0.80, ("remember",)),
    ImportanceTrigger(0.75, ("favorite", "i love", "i like")),
    ImportanceTrigger(0.85, ("deadline", "tomorrow", "today")),
)

IMPORTANCE_THRESHOLDS = (
    (0.95, ImportanceLevel.CRITICAL),
    (0.85, ImportanceLevel.HIGH),
    (0.65, ImportanceLevel.MEDIUM),
)


def classify_memory(content: str) -> MemoryClassification:
    """
    Classify memory text by the first matching rule.

    Args:
        content: Raw memory text

    Returns:
        MemoryClassification: Label of the first matching rule, or conversational

    Example:
        >>> classify_memory("My name is Sam, I live in Austin")
        <MemoryClassification.CONSCIOUS_INFO: 'conscious-info'>
    """
    text = normalize_text(content).lower()
    for rule in CLASSIFICATION_RULES:
        if rule.matches(text):
            return rule.label
    return DEFAULT_CLASSIFICATION


def score_importance(content: str) -> float:
    """
    Score memory importance from trigger phrases.

    Starts at 0.6 and raises the score to the floor of every trigger that
    fires, then clamps to [0.4, 0.99].

    Args:
        content: Raw memory text

    Returns:
        float: Importance score

    Example:
        >>> score_importance("This is critical")
        0.9
    """
    text = normalize_text(content).lower()
    score = BASELINE_IMPORTANCE
    for trigger in IMPORTANCE_TRIGGERS:
        if trigger.fires(text):
            score = max(score, trigger.floor)
    return min(MAX_IMPORTANCE, max(MIN_HEURISTIC_IMPORTANCE, score))


def importance_label(score: float) -> ImportanceLevel:
    """Map an importance score to critical/high/medium/low."""
    for threshold, level in IMPORTANCE_THRESHOLDS:
        if score >= threshold:
            return level
    return ImportanceLevel.LOW
