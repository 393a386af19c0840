"""
Memory duplicate detection.

Compares summaries by token-set Jaccard similarity. The store uses it to
cross-link new memories to earlier near-identical ones; callers can also
run it directly against any list of summaries.
"""

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional, Set

from tiered_memory.memory.classifier import normalize_text

logger = logging.getLogger(__name__)

DUPLICATE_THRESHOLD = 0.90

_TOKEN_SPLIT = re.compile(r"\W+")


@dataclass(frozen=True)
class DuplicateCheck:
    """
    Outcome of a duplicate check.

    Attributes:
        is_duplicate: Similarity reached the threshold
        duplicate_of: Matched prior summary when duplicate
        similarity: Similarity of the match, 0 when no duplicate
    """
    is_duplicate: bool
    duplicate_of: Optional[str] = None
    similarity: float = 0.0


def tokenize(text: str) -> Set[str]:
    """Case-folded token set split on non-word characters."""
    return {token for token in _TOKEN_SPLIT.split(normalize_text(text).lower()) if token}


def jaccard_similarity(a: str, b: str) -> float:
    """
    Token-set intersection over union.

    Args:
        a: First text
        b: Second text

    Returns:
        float: Similarity in [0, 1]; 0 when both texts have no tokens

    Example:
        >>> jaccard_similarity("I love hiking", "i LOVE hiking")
        1.0
    """
    tokens_a = tokenize(a)
    tokens_b = tokenize(b)
    union = tokens_a | tokens_b
    if not union:
        return 0.0
    return len(tokens_a & tokens_b) / len(union)


def detect_duplicates(
    summary: str,
    existing_summaries: Iterable[str],
    threshold: float = DUPLICATE_THRESHOLD
) -> DuplicateCheck:
    """
    Find the first prior summary similar enough to count as a duplicate.

    Args:
        summary: Summary (or content) of the new memory
        existing_summaries: Prior summaries, checked in order
        threshold: Minimum similarity for a duplicate

    Returns:
        DuplicateCheck: First match, or a non-duplicate result
    """
    new_summary = normalize_text(summary)
    for existing in existing_summaries:
        similarity = jaccard_similarity(new_summary, existing)
        if similarity >= threshold:
            logger.debug(f"Duplicate summary detected (similarity {similarity:.2f})")
            return DuplicateCheck(is_duplicate=True, duplicate_of=existing, similarity=similarity)
    return DuplicateCheck(is_duplicate=False)
