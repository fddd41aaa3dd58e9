"""
Change detection package.

- change_tracker: last classified snippet per item
- scheduler: per-item snippet polling state machine
"""

from .change_tracker import ChangeTracker
from .scheduler import PollOutcome, PollState, PollStatus, ReclassificationScheduler

__all__ = [
    "ChangeTracker",
    "PollOutcome",
    "PollState",
    "PollStatus",
    "ReclassificationScheduler",
]
