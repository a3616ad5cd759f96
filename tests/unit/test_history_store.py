"""
Unit tests for the bounded rolling histories.

Tests cover:
- Newest-first ordering and FIFO tail eviction
- Write-through to the local cache and reload
- Cache failures (memory stays authoritative)
- Feed display names
"""
import pytest

from labelscan.services.errors import LocalStorageError
from labelscan.services.history_store import (
    BoundedHistory,
    ScanRecord,
    create_notification_feed,
    create_scan_history,
    feed_display_name,
    feed_entry_for,
)
from tests.factories import make_feed_entry, make_record, make_records
from tests.fixtures.mocks import FlakyCache


class TestPrepend:
    """Tests for ordering and eviction."""

    def test_newest_first(self, history):
        first, second = make_records(2)

        history.prepend(first)
        entries = history.prepend(second)

        assert [e.id for e in entries] == [second.id, first.id]

    def test_evicts_oldest_beyond_capacity(self, history):
        records = make_records(history.capacity + 1)

        for record in records:
            history.prepend(record)

        entries = history.load()
        assert len(entries) == history.capacity
        assert records[0].id not in [e.id for e in entries]
        assert entries[0].id == records[-1].id

    def test_default_capacities(self, cache):
        assert create_scan_history(cache).capacity == 10
        assert create_notification_feed(cache).capacity == 20

    def test_rejects_zero_capacity(self, cache):
        with pytest.raises(ValueError):
            BoundedHistory(cache, "@k", 0, ScanRecord)

    def test_feed_evicts_at_twenty(self, feed):
        for i in range(25):
            feed.prepend(make_feed_entry(entry_id=f"e{i}"))

        entries = feed.load()
        assert len(entries) == 20
        assert entries[0].id == "e24"
        assert entries[-1].id == "e5"


class TestPersistence:
    """Tests for write-through and reload."""

    def test_survives_new_instance(self, cache, history):
        record = make_record(allergens=["milk"])
        history.prepend(record)

        reloaded = create_scan_history(cache).load()

        assert reloaded == [record]
        assert reloaded[0].detected is True

    def test_stored_under_configured_key(self, cache, history):
        history.prepend(make_record())

        assert cache.get("@scanHistory") is not None

    def test_corrupt_cache_entry_reads_as_empty(self, cache):
        cache.set("@scanHistory", "{not json")

        assert create_scan_history(cache).load() == []

    def test_read_failure_reads_as_empty(self):
        cache = FlakyCache()
        cache.fail_get = True

        assert create_scan_history(cache).load() == []

    def test_write_failure_keeps_memory(self):
        cache = FlakyCache()
        history = create_scan_history(cache)
        cache.fail_all_sets = True
        record = make_record()

        with pytest.raises(LocalStorageError):
            history.prepend(record)

        assert history.load() == [record]
        assert cache.get("@scanHistory") is None

    def test_replace_truncates_to_capacity(self, history):
        records = list(reversed(make_records(12)))

        entries = history.replace(records)

        assert len(entries) == 10
        assert entries[0].id == "scan-11"

    def test_reload_reads_cache_again(self, cache, history):
        history.load()
        create_scan_history(cache).prepend(make_record(record_id="elsewhere"))

        assert history.load() == []
        assert [e.id for e in history.reload()] == ["elsewhere"]


class TestClear:
    """Tests for clearing a store."""

    def test_clear_removes_key(self, cache, history):
        history.prepend(make_record())

        history.clear()

        assert history.load() == []
        assert cache.get("@scanHistory") is None

    def test_clear_with_extra_keys_is_one_operation(self):
        cache = FlakyCache()
        cache.set("@other", "1")
        feed = create_notification_feed(cache)
        feed.prepend(make_feed_entry())

        feed.clear(extra_keys=["@other"])

        assert cache.multi_remove_calls == [["@scannedItemsHistory", "@other"]]
        assert cache.get("@other") is None
        assert feed.load() == []

    def test_failed_clear_leaves_entries(self):
        cache = FlakyCache()
        history = create_scan_history(cache)
        history.prepend(make_record())
        cache.fail_remove = True

        with pytest.raises(LocalStorageError):
            history.clear()

        assert len(history) == 1


class TestScanRecord:
    """Tests for record helpers."""

    def test_local_only_ids(self):
        assert make_record(record_id="local_1700000000000_ab12cd34").is_local_only
        assert not make_record(record_id="abc123").is_local_only

    def test_detected_follows_allergens(self):
        assert make_record(allergens=[]).detected is False
        assert make_record(allergens=["soy"]).detected is True


class TestFeedDisplayName:
    """Tests for feed entry names."""

    def test_newlines_become_spaces(self):
        assert feed_display_name("Line one\nLine two\r\nthree") == "Line one Line two three"

    def test_exact_limit_is_kept(self):
        text = "x" * 70

        assert feed_display_name(text) == text

    def test_long_text_truncated_with_ellipsis(self):
        name = feed_display_name("y" * 71)

        assert len(name) == 70
        assert name.endswith("...")
        assert name.startswith("y" * 67)

    def test_feed_entry_shares_record_id_and_time(self):
        record = make_record(record_id="abc123", text="Ingredients:\nmilk")

        entry = feed_entry_for(record)

        assert entry.id == "abc123"
        assert entry.name == "Ingredients: milk"
        assert entry.scanned_at == record.timestamp
