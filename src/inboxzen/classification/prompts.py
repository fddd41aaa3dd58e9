"""
Prompt templates for the remote classifier.

The remote model is asked for the category name only; validation of the
answer lives in validators.py.
"""

from typing import Dict, List, Optional

from inboxzen.classification.scorer import build_classification_text
from inboxzen.models.category import Category, DEFAULT_CATEGORIES


CURRENT_PROMPT_VERSION = "v1.0"

# Longer snippets add cost without changing the answer
MAX_PROMPT_TEXT_LENGTH = 2000


def build_system_prompt(categories: Optional[List[str]] = None) -> str:
    """
    Build the system prompt listing the allowed categories.

    Args:
        categories: Category labels to offer (default: all categories)
    """
    labels = ", ".join(categories or DEFAULT_CATEGORIES)
    return (
        "You are a message classifier for LinkedIn. Classify the following message "
        f"into exactly one of these categories: {labels}. "
        "Reply with only the category name."
    )


def build_prompt_text(text: str, sender: str = "", subject: str = "") -> str:
    """
    Build the user prompt: the same case-folded text the local scorer sees,
    truncated to MAX_PROMPT_TEXT_LENGTH.
    """
    full_text = build_classification_text(text, sender, subject).strip()
    return full_text[:MAX_PROMPT_TEXT_LENGTH]


def build_messages(prompt_text: str, categories: Optional[List[str]] = None) -> List[Dict[str, str]]:
    """Chat messages for an OpenAI-compatible or Ollama chat endpoint."""
    return [
        {"role": "system", "content": build_system_prompt(categories)},
        {"role": "user", "content": prompt_text},
    ]


def get_prompt_info() -> Dict[str, str]:
    return {
        "version": CURRENT_PROMPT_VERSION,
        "fallback_category": Category.OTHER.value,
    }
