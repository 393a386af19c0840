"""
Naive entity and keyword harvesting from memory text.
"""

import re
from typing import List, Tuple

from tiered_memory.memory.classifier import normalize_text
from tiered_memory.models.schemas import Entity, MAX_KEYWORDS

PERSON_PATTERN = re.compile(r"\b([A-Z][a-z]+(?:\s+[A-Z][a-z]+)*)\b")
WORD_SPLIT = re.compile(r"\W+")

TOPICAL_KEYWORDS = (
    "aws", "gcp", "azure",
    "postgres", "mysql", "drizzle",
    "react", "next.js", "node",
    "python", "golang", "rust",
    "kubernetes", "docker",
)

STOP_WORDS = frozenset({
    "this", "that", "with", "from", "have", "were", "them", "they", "been",
    "will", "there", "about", "which", "because", "while", "after", "before",
    "when",
})


def extract_people(text: str) -> List[Entity]:
    """Maximal runs of capitalized words, each as a person entity."""
    return [
        Entity(type="person", value=match)
        for match in PERSON_PATTERN.findall(text)
        if len(match) > 1
    ]


def extract_keywords(text: str, max_keywords: int = MAX_KEYWORDS) -> List[str]:
    """
    Topical vocabulary hits first, then generic words, deduplicated in order.

    Args:
        text: Memory text
        max_keywords: Upper bound on the result size

    Returns:
        List[str]: Keywords in insertion order
    """
    lower = text.lower()
    keywords = {}

    for topic in TOPICAL_KEYWORDS:
        if topic in lower:
            keywords[topic] = None

    for word in WORD_SPLIT.split(lower):
        if len(word) > 3 and word not in STOP_WORDS:
            keywords[word] = None

    return list(keywords)[:max_keywords]


def extract_entities(content: str) -> Tuple[List[Entity], List[str]]:
    """
    Harvest person entities and keywords from memory text.

    Args:
        content: Raw memory text

    Returns:
        Tuple[List[Entity], List[str]]: (entities, keywords)

    Example:
        >>> entities, keywords = extract_entities("Ana Lopez deploys React on AWS")
        >>> entities[0].value
        'Ana Lopez'
        >>> keywords[:2]
        ['aws', 'react']
    """
    text = normalize_text(content)
    return extract_people(text), extract_keywords(text)
