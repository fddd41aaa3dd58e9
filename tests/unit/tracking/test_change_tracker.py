"""
Unit tests for the change tracker.
"""

from inboxzen.tracking.change_tracker import ChangeTracker


class TestChangeTracker:
    """Meaningful-change rules."""

    def test_empty_text_never_meaningful(self):
        tracker = ChangeTracker()

        assert tracker.has_meaningful_change("c1", "") is False
        tracker.commit("c1", "hello")
        assert tracker.has_meaningful_change("c1", "") is False

    def test_first_non_empty_text_is_meaningful(self):
        assert ChangeTracker().has_meaningful_change("c1", "hello") is True

    def test_repeat_after_commit_not_meaningful(self):
        tracker = ChangeTracker()
        tracker.commit("c1", "hello")

        assert tracker.has_meaningful_change("c1", "hello") is False
        assert tracker.has_meaningful_change("c1", "hello again") is True

    def test_items_are_independent(self):
        tracker = ChangeTracker()
        tracker.commit("c1", "hello")

        assert tracker.has_meaningful_change("c2", "hello") is True

    def test_forget(self):
        tracker = ChangeTracker()
        tracker.commit("c1", "hello")

        assert tracker.forget("c1") is True
        assert tracker.forget("c1") is False
        assert "c1" not in tracker
        assert tracker.has_meaningful_change("c1", "hello") is True

    def test_fingerprint_and_len(self):
        tracker = ChangeTracker()
        tracker.commit("c1", "a")
        tracker.commit("c2", "b")

        assert tracker.fingerprint("c1") == "a"
        assert tracker.fingerprint("c3") is None
        assert len(tracker) == 2
