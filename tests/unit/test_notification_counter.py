"""
Unit tests for the notification watermark.
"""
import pytest

from labelscan.services.errors import LocalStorageError
from labelscan.services.history_store import create_notification_feed
from labelscan.services.notification_counter import NotificationCounter
from tests.factories import make_feed_entry
from tests.fixtures.mocks import FlakyCache


def fill(notifications, count, prefix="e"):
    for i in range(count):
        notifications.record(make_feed_entry(entry_id=f"{prefix}{i}"))


class TestUnseen:
    """Tests for unseen state."""

    def test_empty_feed_has_nothing_unseen(self, notifications):
        assert notifications.watermark == 0
        assert not notifications.has_unseen
        assert notifications.unseen_count == 0

    def test_new_entry_is_unseen(self, notifications):
        notifications.record(make_feed_entry())

        assert notifications.has_unseen
        assert notifications.unseen_count == 1

    def test_mark_seen_clears_until_next_entry(self, notifications):
        fill(notifications, 3)

        assert notifications.mark_seen() == 3
        assert not notifications.has_unseen

        notifications.record(make_feed_entry())

        assert notifications.has_unseen
        assert notifications.unseen_count == 1

    def test_mark_seen_is_idempotent(self, cache, notifications):
        fill(notifications, 2)

        notifications.mark_seen()
        notifications.mark_seen()

        assert notifications.watermark == 2
        assert cache.get("@lastSeenScanCount") == "2"

    def test_watermark_survives_restart(self, cache, notifications):
        fill(notifications, 2)
        notifications.mark_seen()

        restarted = NotificationCounter(create_notification_feed(cache), cache)

        assert restarted.watermark == 2
        assert not restarted.has_unseen

    @pytest.mark.parametrize("raw", ["abc", "-4"])
    def test_invalid_stored_watermark_reads_as_zero(self, cache, notifications, raw):
        cache.set("@lastSeenScanCount", raw)

        assert notifications.watermark == 0


class TestFullFeed:
    """Tests for the watermark when the feed is at capacity."""

    def test_new_entry_on_full_seen_feed_is_unseen(self, notifications):
        fill(notifications, 20)
        notifications.mark_seen()

        notifications.record(make_feed_entry(entry_id="newest"))

        assert len(notifications.feed.load()) == 20
        assert notifications.watermark == 19
        assert notifications.has_unseen
        assert notifications.unseen_count == 1

    def test_unseen_entries_stay_unseen_through_eviction(self, notifications):
        fill(notifications, 18)
        notifications.mark_seen()
        fill(notifications, 5, prefix="n")

        assert notifications.unseen_count == 5


class TestClear:
    """Tests for clearing feed and watermark together."""

    def test_clear_resets_feed_and_watermark(self, cache, notifications):
        fill(notifications, 4)
        notifications.mark_seen()

        notifications.clear()

        assert notifications.feed.load() == []
        assert notifications.watermark == 0
        assert not notifications.has_unseen
        assert cache.get("@scannedItemsHistory") is None
        assert cache.get("@lastSeenScanCount") is None

    def test_failed_clear_changes_neither(self):
        cache = FlakyCache()
        notifications = NotificationCounter(create_notification_feed(cache), cache)
        fill(notifications, 3)
        notifications.mark_seen()
        cache.fail_remove = True

        with pytest.raises(LocalStorageError):
            notifications.clear()

        assert len(notifications.feed.load()) == 3
        assert notifications.watermark == 3

    def test_reset_watermark_keeps_feed(self, cache, notifications):
        fill(notifications, 2)
        notifications.mark_seen()

        notifications.reset_watermark()

        assert len(notifications.feed.load()) == 2
        assert notifications.has_unseen
        assert cache.get("@lastSeenScanCount") is None
