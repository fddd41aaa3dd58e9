"""
CLI module for conversation classification.

Provides command-line tools for classifying snippets, replaying event logs and
managing the category cache.
"""

from inboxzen.cli.main import main

__all__ = ["main"]
