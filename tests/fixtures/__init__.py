"""Test fixtures for Label Scan."""

from tests.fixtures.mocks import (
    FlakyCache,
    MockInsightService,
    MockOcrService,
    MockRemoteStore,
)

__all__ = [
    "FlakyCache",
    "MockInsightService",
    "MockOcrService",
    "MockRemoteStore",
]
