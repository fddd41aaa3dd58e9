"""
Validation of remote classifier answers.

Remote answers are free text. They are accepted only when they name one of the
known categories; everything else is rejected so the caller can fall back to
Other.
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional

import structlog

from inboxzen.models.category import Category, parse_category


logger = structlog.get_logger(__name__)

# Decoration models commonly wrap the label in
_STRIP_CHARS = " \t\r\n\"'`.:*"


@dataclass
class AnswerValidation:
    """Result of validating a remote answer."""
    valid: bool
    category: Optional[Category] = None
    errors: List[str] = field(default_factory=list)


def normalize_answer(raw: str) -> str:
    """
    Trim whitespace, quotes, trailing punctuation and a "Category:" prefix.

    Examples:
        '"Job Offers".' -> 'Job Offers'
        'Category: Spam' -> 'Spam'
    """
    answer = raw.strip(_STRIP_CHARS)
    if ":" in answer:
        prefix, rest = answer.split(":", 1)
        if prefix.strip().lower() == "category":
            answer = rest.strip(_STRIP_CHARS)
    return answer


def validate_remote_answer(raw: Any) -> AnswerValidation:
    """
    Validate a remote classifier answer.

    Args:
        raw: Whatever the remote client returned

    Returns:
        AnswerValidation; category is set only when valid
    """
    if not isinstance(raw, str):
        return AnswerValidation(valid=False, errors=[f"Answer is not text: {type(raw).__name__}"])

    answer = normalize_answer(raw)
    if not answer:
        return AnswerValidation(valid=False, errors=["Empty answer"])

    category = parse_category(answer)
    if category is None:
        logger.warning("remote_answer_unknown_category", answer=answer[:50])
        return AnswerValidation(valid=False, errors=[f"Unknown category: {answer[:50]}"])

    return AnswerValidation(valid=True, category=category)
