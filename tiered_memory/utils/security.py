"""
Input validation for the retrieval API.

Rejects missing or malformed identifiers, turn text and search queries
before they reach storage. Violations raise ValidationError.
"""

import re
from typing import Optional

from tiered_memory.core.exceptions import ValidationError

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_USER_ID = re.compile(r"^[a-zA-Z0-9_.@:-]+$")


def validate_user_id(user_id: str) -> str:
    """
    Validate a user id so it is safe to use as a storage key.

    Args:
        user_id: User identifier

    Returns:
        Stripped user id

    Raises:
        ValidationError: If user_id is missing, too long or has invalid characters
    """
    if not user_id or not isinstance(user_id, str):
        raise ValidationError("userId is required")

    user_id = user_id.strip()

    if not user_id:
        raise ValidationError("userId is required")

    if len(user_id) > 255:
        raise ValidationError("User ID too long. Maximum 255 characters allowed.")

    if not _USER_ID.match(user_id):
        raise ValidationError(
            "User ID can only contain letters, numbers, dots, colons, @, hyphens and underscores"
        )

    return user_id


def validate_turn_text(text: Optional[str], field: str, max_length: int, required: bool = True) -> str:
    """
    Validate one text field of a conversation turn.

    Control characters other than tabs and newlines are removed; the text is
    otherwise kept as written.

    Args:
        text: Raw text
        field: Field name used in error messages
        max_length: Maximum allowed length
        required: Whether an empty value is an error

    Returns:
        Cleaned text ("" for an allowed empty value)

    Raises:
        ValidationError: If a required field is empty or the text is too long
    """
    if text is None:
        text = ""
    if not isinstance(text, str):
        raise ValidationError(f"{field} must be a string")

    text = _CONTROL_CHARS.sub("", text)

    if required and not text.strip():
        raise ValidationError(f"{field} is required")

    if len(text) > max_length:
        raise ValidationError(f"{field} too long. Maximum {max_length} characters allowed.")

    return text


def validate_search_query(query: Optional[str]) -> str:
    """
    Validate a search query.

    Args:
        query: Search query string

    Returns:
        Stripped query without control characters

    Raises:
        ValidationError: If query is empty or too long
    """
    if not query or not isinstance(query, str):
        raise ValidationError("query is required")

    query = _CONTROL_CHARS.sub("", query).strip()

    if not query:
        raise ValidationError("query is required")

    if len(query) > 500:
        raise ValidationError("Search query too long. Maximum 500 characters allowed.")

    return query
