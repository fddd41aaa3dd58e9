"""
Conversation classifier: local keyword rules first, optional remote fallback.

Coordinates:
1. Local keyword scoring (deterministic, always available)
2. Remote classification when local rules are inconclusive and the user has
   configured it (credential + opt-in)
3. Validation of the remote answer against the known categories

classify() never raises: every failure path degrades to Category.OTHER.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Dict, Optional

import structlog

from inboxzen.classification.prompts import build_prompt_text
from inboxzen.classification.remote_client import RemoteClassifier
from inboxzen.classification.scorer import KeywordScorer
from inboxzen.classification.validators import validate_remote_answer
from inboxzen.config import settings
from inboxzen.models.category import Category


logger = structlog.get_logger(__name__)


SOURCE_LOCAL = "local"
SOURCE_REMOTE = "remote"
SOURCE_FALLBACK = "fallback"


@dataclass
class ClassificationOutcome:
    """Category plus how it was obtained, for diagnostics."""
    category: Category
    source: str
    scores: Dict[str, int] = field(default_factory=dict)
    latency_ms: int = 0


class ConversationClassifier:
    """
    Classifier chain for conversation snippets.
    """

    def __init__(
        self,
        scorer: Optional[KeywordScorer] = None,
        remote: Optional[RemoteClassifier] = None,
        remote_timeout_seconds: Optional[float] = None,
    ):
        """
        Initialize classifier.

        Args:
            scorer: Local keyword scorer (default: built from settings)
            remote: Remote classifier, None when not configured
            remote_timeout_seconds: Hard budget for one remote call
        """
        self.scorer = scorer or KeywordScorer()
        self.remote = remote
        self.remote_timeout_seconds = (
            remote_timeout_seconds
            if remote_timeout_seconds is not None
            else settings.remote_timeout_seconds
        )
        self.logger = logger.bind(classifier="ConversationClassifier")

    @property
    def remote_enabled(self) -> bool:
        return self.remote is not None

    async def classify(self, text: str, sender: str = "", subject: str = "") -> Category:
        """
        Classify a conversation.

        Args:
            text: Message snippet
            sender: Participant names
            subject: Conversation subject

        Returns:
            Category (Other on inconclusive local rules and no usable remote answer)
        """
        outcome = await self.classify_detailed(text, sender, subject)
        return outcome.category

    async def classify_detailed(
        self,
        text: str,
        sender: str = "",
        subject: str = ""
    ) -> ClassificationOutcome:
        """Like classify(), returning the source and local scores as well."""
        start_time = time.time()

        local = self.scorer.score(text or "", sender or "", subject or "")
        scores = local.as_dict()

        if local.conclusive:
            return ClassificationOutcome(
                category=local.best,
                source=SOURCE_LOCAL,
                scores=scores,
                latency_ms=int((time.time() - start_time) * 1000),
            )

        if self.remote is None:
            return ClassificationOutcome(
                category=Category.OTHER,
                source=SOURCE_FALLBACK,
                scores=scores,
                latency_ms=int((time.time() - start_time) * 1000),
            )

        category = await self._classify_remote(build_prompt_text(text or "", sender or "", subject or ""))

        return ClassificationOutcome(
            category=category or Category.OTHER,
            source=SOURCE_REMOTE if category else SOURCE_FALLBACK,
            scores=scores,
            latency_ms=int((time.time() - start_time) * 1000),
        )

    async def _classify_remote(self, prompt_text: str) -> Optional[Category]:
        """
        One remote call under the timeout budget.

        Returns:
            Validated category, or None on any failure
        """
        log = self.logger.bind(remote=self.remote.provider)
        try:
            answer = await asyncio.wait_for(
                self.remote.classify(prompt_text),
                timeout=self.remote_timeout_seconds,
            )
        except asyncio.TimeoutError:
            log.warning(
                "remote_classification_timeout",
                timeout_seconds=self.remote_timeout_seconds
            )
            return None
        except Exception as e:
            log.error(
                "remote_classification_failed",
                error=str(e),
                error_type=type(e).__name__
            )
            return None

        validation = validate_remote_answer(answer)
        if not validation.valid:
            log.warning(
                "remote_answer_rejected",
                errors=validation.errors
            )
            return None

        log.debug("remote_classification_completed", category=validation.category.value)
        return validation.category


# ============================================================================
# CONVENIENCE FUNCTIONS
# ============================================================================

async def classify_conversation(
    text: str,
    sender: str = "",
    subject: str = "",
    remote: Optional[RemoteClassifier] = None
) -> Category:
    """
    Classify a conversation with a default scorer.

    Example:
        >>> await classify_conversation("We have a great job opportunity, are you hiring?")
        <Category.JOB_OFFERS: 'Job Offers'>
    """
    classifier = ConversationClassifier(remote=remote)
    return await classifier.classify(text, sender, subject)
