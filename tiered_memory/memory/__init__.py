"""Memory processing components."""

from .classifier import classify_memory, score_importance, importance_label, CLASSIFICATION_RULES
from .harvester import extract_entities
from .deduplicator import jaccard_similarity, detect_duplicates, DuplicateCheck
from .decoder import decode_extraction_response, DecodeSuccess, DecodeFailure, FailureReason
from .extractor import MemoryExtractor
from .ranking import recency_score, composite_score, rank_results
from .store import TieredMemoryStore
from .retriever import MemoryRetriever

__all__ = [
    "classify_memory",
    "score_importance",
    "importance_label",
    "CLASSIFICATION_RULES",
    "extract_entities",
    "jaccard_similarity",
    "detect_duplicates",
    "DuplicateCheck",
    "decode_extraction_response",
    "DecodeSuccess",
    "DecodeFailure",
    "FailureReason",
    "MemoryExtractor",
    "recency_score",
    "composite_score",
    "rank_results",
    "TieredMemoryStore",
    "MemoryRetriever"
]
