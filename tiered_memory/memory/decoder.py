"""
Strict decoding of extraction-model responses.

A response either decodes completely into an ExtractionPayload or yields a
DecodeFailure describing why; there is no partial acceptance. Failures carry
the reason, a detail message and the raw text so the extractor can log them
before falling back to heuristics.
"""

import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

_WRAPPING_FENCE = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.DOTALL)


class RawMemory(BaseModel):
    """One memory exactly as the model returned it; fields are repaired later."""
    model_config = ConfigDict(extra="ignore")

    content: Optional[str] = None
    summary: Optional[str] = None
    searchable_text: Optional[str] = None
    classification: Optional[str] = None
    importance_score: Optional[float] = None
    entities: Optional[List[Any]] = None
    keywords: Optional[List[Any]] = None
    is_conscious: Optional[bool] = None


class ExtractionPayload(BaseModel):
    """Top-level response contract: {"memories": [...]}."""
    model_config = ConfigDict(extra="ignore")

    memories: List[RawMemory]


class FailureReason(str, Enum):
    """Why a model extraction could not be used."""
    UNAVAILABLE = "unavailable"
    TRANSPORT = "transport"
    TIMEOUT = "timeout"
    EMPTY = "empty"
    INVALID_JSON = "invalid_json"
    SCHEMA = "schema"


@dataclass(frozen=True)
class DecodeSuccess:
    payload: ExtractionPayload

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class DecodeFailure:
    """
    Failed model extraction.

    Attributes:
        reason: Failure category
        detail: Human-readable diagnostic
        raw: Raw response text when one was received
    """
    reason: FailureReason
    detail: str
    raw: Optional[str] = None

    @property
    def ok(self) -> bool:
        return False


DecodeResult = Union[DecodeSuccess, DecodeFailure]


def decode_extraction_response(raw: Optional[str]) -> DecodeResult:
    """
    Decode a model response into an ExtractionPayload.

    Args:
        raw: Response text from the model

    Returns:
        DecodeResult: DecodeSuccess with the payload, or DecodeFailure

    Example:
        >>> result = decode_extraction_response('{"memories": []}')
        >>> result.ok
        True
        >>> decode_extraction_response("not json").reason
        <FailureReason.INVALID_JSON: 'invalid_json'>
    """
    if raw is None or not raw.strip():
        return DecodeFailure(FailureReason.EMPTY, "Model returned an empty response", raw)

    cleaned = raw.strip()
    fenced = _WRAPPING_FENCE.fullmatch(cleaned)
    if fenced:
        cleaned = fenced.group(1)

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        return DecodeFailure(FailureReason.INVALID_JSON, f"Invalid JSON response: {e}", raw)

    if not isinstance(data, dict) or "memories" not in data:
        return DecodeFailure(FailureReason.SCHEMA, "Missing 'memories' field", raw)

    if not isinstance(data["memories"], list):
        return DecodeFailure(FailureReason.SCHEMA, "'memories' must be a list", raw)

    try:
        payload = ExtractionPayload.model_validate(data)
    except PydanticValidationError as e:
        return DecodeFailure(
            FailureReason.SCHEMA,
            f"Schema violation: {e.error_count()} invalid field(s): {e.errors()[0]['msg']}",
            raw
        )

    return DecodeSuccess(payload)
