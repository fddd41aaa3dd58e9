"""
Classification package.

Main components:
- scorer: deterministic local keyword scorer
- prompts: remote classifier prompt templates
- remote_client: remote classifier abstraction (OpenAI-compatible, Ollama)
- validators: remote answer validation
- classifier: classifier chain (local rules, then optional remote)
"""

from inboxzen.classification.classifier import (
    ClassificationOutcome,
    ConversationClassifier,
    classify_conversation,
)
from inboxzen.classification.remote_client import (
    RemoteClassificationError,
    RemoteClassifier,
    create_remote_classifier,
    is_remote_configured,
)
from inboxzen.classification.scorer import KeywordScore, KeywordScorer, classify_locally

__all__ = [
    "ClassificationOutcome",
    "ConversationClassifier",
    "classify_conversation",
    "RemoteClassificationError",
    "RemoteClassifier",
    "create_remote_classifier",
    "is_remote_configured",
    "KeywordScore",
    "KeywordScorer",
    "classify_locally",
]
