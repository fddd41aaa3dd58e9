"""
Rule-based keyword scorer for conversation categories.

Deterministic and cheap: runs on every visible item on every scan.

Each category scores +1 per distinct keyword found in the case-folded
"sender subject text" string (not per occurrence). The strictly highest score
wins, ties go to the first category in PRIORITY_ORDER. A best score below the
threshold is inconclusive and defers to the remote classifier.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import structlog

from inboxzen.config import settings
from inboxzen.models.category import Category, PRIORITY_ORDER


logger = structlog.get_logger(__name__)


# ============================================================================
# KEYWORD LISTS
# ============================================================================

JOB_OFFER_TERMS = [
    "job", "position", "opportunity", "hiring", "recruiter",
    "career", "employment", "role", "opening", "vacancy",
    "interview", "application", "applicant", "resume", "cv",
]

NETWORKING_TERMS = [
    "connect", "network", "introduction", "meet", "coffee",
    "chat", "catch up", "referred", "mutual",
    "know each other", "connection", "group", "community",
]

SALES_TERMS = [
    "buy", "demo", "product", "service", "offer", "sale",
    "discount", "price", "quote", "solution", "implement",
    "purchase", "invest", "roi", "cost", "subscription",
]

SPAM_TERMS = [
    "congratulation", "lottery", "winner", "gift", "free",
    "urgent", "limited time", "exclusive offer", "guaranteed",
    "millions", "investment opportunity", "quick money",
]

DEFAULT_KEYWORDS: Dict[Category, List[str]] = {
    Category.JOB_OFFERS: JOB_OFFER_TERMS,
    Category.NETWORKING: NETWORKING_TERMS,
    Category.SALES: SALES_TERMS,
    Category.SPAM: SPAM_TERMS,
}


def build_classification_text(text: str, sender: str, subject: str) -> str:
    """Concatenate sender, subject and text, case-folded."""
    return f"{sender or ''} {subject or ''} {text or ''}".casefold()


# ============================================================================
# SCORER
# ============================================================================

@dataclass
class KeywordScore:
    """Outcome of local scoring."""
    scores: Dict[Category, int] = field(default_factory=dict)
    best: Optional[Category] = None
    best_score: int = 0
    threshold: int = 2

    @property
    def conclusive(self) -> bool:
        """A best match at or above the threshold."""
        return self.best is not None and self.best_score >= self.threshold

    def as_dict(self) -> Dict[str, int]:
        return {category.value: score for category, score in self.scores.items()}


class KeywordScorer:
    """
    Distinct-keyword scorer over a fixed category → keywords table.
    """

    def __init__(
        self,
        keywords: Optional[Dict[Category, Sequence[str]]] = None,
        threshold: Optional[int] = None,
    ):
        table = keywords if keywords is not None else DEFAULT_KEYWORDS
        # Distinct, lowercase keywords per category, in priority order
        self.keywords: Dict[Category, List[str]] = {}
        for category in PRIORITY_ORDER:
            terms = table.get(category, [])
            self.keywords[category] = list(dict.fromkeys(t.casefold() for t in terms))

        self.threshold = threshold if threshold is not None else settings.local_score_threshold
        self.logger = logger.bind(component="keyword_scorer")

    def score(self, text: str, sender: str = "", subject: str = "") -> KeywordScore:
        """
        Score all categories for a conversation.

        Args:
            text: Message snippet
            sender: Participant names
            subject: Conversation subject

        Returns:
            KeywordScore with per-category scores and the winning category
        """
        full_text = build_classification_text(text, sender, subject)

        scores: Dict[Category, int] = {}
        best: Optional[Category] = None
        best_score = 0

        for category in PRIORITY_ORDER:
            hits = sum(1 for term in self.keywords[category] if term in full_text)
            scores[category] = hits
            # Strictly greater: earlier categories keep ties
            if hits > best_score:
                best, best_score = category, hits

        result = KeywordScore(
            scores=scores,
            best=best,
            best_score=best_score,
            threshold=self.threshold,
        )

        self.logger.debug(
            "keywords_scored",
            best=best.value if best else None,
            best_score=best_score,
            conclusive=result.conclusive,
        )

        return result


def classify_locally(
    text: str,
    sender: str = "",
    subject: str = "",
    scorer: Optional[KeywordScorer] = None,
) -> Optional[Category]:
    """
    Local-only classification.

    Returns:
        The winning category, or None when local rules are inconclusive
    """
    if scorer is None:
        scorer = KeywordScorer()

    result = scorer.score(text, sender, subject)
    return result.best if result.conclusive else None
