"""
Incremental classification pipeline.

- adapters: document and presentation interfaces, in-memory implementations
- filters: category filtering and keyboard shortcuts
- orchestrator: Pipeline wiring signals and scans to the classifier and cache
- session: session bootstrap
"""

from .adapters import DocumentAdapter, InMemoryDocument, LabelBoard, PresentationAdapter
from .filters import FILTER_SHORTCUTS, FilterView, apply_filter, shortcut_category
from .orchestrator import Pipeline
from .session import SessionContext, build_pipeline, install, open_session

__all__ = [
    "DocumentAdapter",
    "InMemoryDocument",
    "LabelBoard",
    "PresentationAdapter",
    "FILTER_SHORTCUTS",
    "FilterView",
    "apply_filter",
    "shortcut_category",
    "Pipeline",
    "SessionContext",
    "build_pipeline",
    "install",
    "open_session",
]
