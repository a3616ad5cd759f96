"""
Scan pipeline orchestration.

Sequences one scan: image -> OCR text -> rule-based match -> enrichment ->
reconciliation -> persistence -> notification state. State machine:

    IDLE -> CAPTURING -> EXTRACTING -> MATCHING -> PERSISTING -> COMPLETE -> IDLE
                             |
                             +-> ERROR -> IDLE

An OCR failure (no text, service error, unreadable image) or any other
unexpected error before persistence leads to ERROR, and nothing is persisted
in that case. Enrichment and storage failures
are absorbed: every scan that yields text ends COMPLETE with a flagged/clear
determination and a notification feed entry.

One pipeline serves one device. A second scan is rejected while one is in
flight (EXTRACTING, MATCHING or PERSISTING).
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from labelscan.config import settings
from labelscan.services.allergen_matcher import UserAllergyProfile, match_allergens
from labelscan.services.daily_goal import DailyProgress, daily_progress
from labelscan.services.errors import (
    InvalidStateError,
    OcrError,
    PipelineBusyError,
    ScanFailedError,
    TransientExternalFailure,
)
from labelscan.services.history_store import (
    ScanRecord,
    create_notification_feed,
    create_scan_history,
)
from labelscan.services.image_service import ImageService, image_service
from labelscan.services.insight_service import (
    Degraded,
    InsightResult,
    InsightService,
    Pending,
)
from labelscan.services.local_cache import LocalCache, get_local_cache
from labelscan.services.notification_counter import NotificationCounter
from labelscan.services.ocr_service import OcrService
from labelscan.services.persistence_coordinator import (
    PersistenceResult,
    ScanPersistenceCoordinator,
    Written,
)
from labelscan.services.reconciler import (
    AlertContent,
    AllergenDetermination,
    describe_determination,
    is_flagged,
    reconcile,
)
from labelscan.services.remote_store.base import RemoteScanStore
from labelscan.services.session_service import SessionService

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    EXTRACTING = "extracting"
    MATCHING = "matching_enriching"
    PERSISTING = "persisting"
    COMPLETE = "complete"
    ERROR = "error"


IN_FLIGHT = {PipelineState.EXTRACTING, PipelineState.MATCHING, PipelineState.PERSISTING}


@dataclass
class ScanOutcome:
    """Everything the result view needs after a completed scan."""

    record: ScanRecord
    rule_hits: List[str]
    insight: InsightResult
    determination: AllergenDetermination
    persistence: PersistenceResult
    alert: AlertContent
    daily_progress: DailyProgress
    has_unseen_notifications: bool

    @property
    def flagged(self) -> bool:
        return is_flagged(self.determination)

    @property
    def saved_remotely(self) -> bool:
        return isinstance(self.persistence.write, Written)


Listener = Callable[[PipelineState, "ScanPipeline"], None]


class ScanPipeline:
    """Runs scans one at a time and exposes the current state to the UI."""

    def __init__(
        self,
        ocr_service: OcrService,
        insight_service: InsightService,
        coordinator: ScanPersistenceCoordinator,
        images: Optional[ImageService] = None,
    ):
        self.ocr_service = ocr_service
        self.insight_service = insight_service
        self.coordinator = coordinator
        self.images = images or image_service

        self._state = PipelineState.IDLE
        self._listeners: List[Listener] = []
        self.text: Optional[str] = None
        self.preliminary_hits: List[str] = []
        self.insight: Optional[InsightResult] = None
        self.outcome: Optional[ScanOutcome] = None
        self.failure: Optional[ScanFailedError] = None

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def busy(self) -> bool:
        return self._state in IN_FLIGHT

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a state listener; returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _transition(self, state: PipelineState) -> None:
        logger.debug("Scan pipeline %s -> %s", self._state.value, state.value)
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state, self)
            except Exception:
                # A view that went away must not break the scan
                logger.exception("Scan pipeline listener failed on %s", state.value)

    def _reset_run(self) -> None:
        self.text = None
        self.preliminary_hits = []
        self.insight = None
        self.outcome = None
        self.failure = None

    def begin_capture(self) -> None:
        """User is picking or taking a photo."""
        if self.busy:
            raise PipelineBusyError("A scan is already in progress")
        if self._state is PipelineState.CAPTURING:
            return
        self._reset_run()
        self._transition(PipelineState.CAPTURING)

    def cancel_capture(self) -> None:
        """User closed the picker without choosing an image."""
        if self._state is not PipelineState.CAPTURING:
            raise InvalidStateError(f"Cannot cancel capture from {self._state.value}")
        self._transition(PipelineState.IDLE)

    def dismiss(self) -> None:
        """User acknowledged the result or the error."""
        if self._state not in (PipelineState.COMPLETE, PipelineState.ERROR):
            raise InvalidStateError(f"Nothing to dismiss in {self._state.value}")
        self._transition(PipelineState.IDLE)

    # =========================================================================
    # RUN
    # =========================================================================

    def _fail(self, message: str, reason: str) -> ScanFailedError:
        self.failure = ScanFailedError(message, reason)
        self._transition(PipelineState.ERROR)
        return self.failure

    async def _extract_text(self, image_ref: str) -> str:
        try:
            image_b64 = self.images.encode_for_ocr(image_ref)
        except ValueError as e:
            logger.error("Could not read image %s: %s", image_ref, e)
            raise self._fail("Failed to read the image. Please try another photo.", "image_error")
        except Exception:
            logger.exception("Unexpected failure reading image %s", image_ref)
            raise self._fail("Failed to read the image. Please try another photo.", "image_error")

        try:
            text = await asyncio.wait_for(
                self.ocr_service.extract_text(image_b64), settings.ocr_timeout
            )
        except asyncio.TimeoutError:
            logger.error("OCR timed out after %.1fs", settings.ocr_timeout)
            raise self._fail("Text recognition timed out. Please try again.", "ocr_timeout")
        except (TransientExternalFailure, OcrError) as e:
            logger.error("OCR failed: %s", e)
            raise self._fail(f"Failed to analyze image. Details: {e}", "ocr_error")
        except Exception as e:
            logger.exception("Unexpected OCR failure")
            raise self._fail(f"Failed to analyze image. Details: {e}", "ocr_error") from e

        if not text:
            raise self._fail("Could not detect text in the image.", "no_text")
        return text

    async def scan(
        self, image_ref: str, profile: Optional[UserAllergyProfile] = None
    ) -> ScanOutcome:
        """
        Run a full scan for an image.

        The identity inside `profile` is captured here once and used for the
        whole run, so signing out mid-scan cannot redirect the write.

        Raises:
            PipelineBusyError: another scan is in flight
            ScanFailedError: no text could be extracted (state is ERROR)
        """
        if self.busy:
            raise PipelineBusyError("A scan is already in progress")
        if self._state is not PipelineState.CAPTURING:
            self.begin_capture()

        profile = profile or UserAllergyProfile.anonymous()
        identity = profile.identity
        tokens = list(profile.tokens)

        try:
            self._transition(PipelineState.EXTRACTING)
            text = await self._extract_text(image_ref)
            self.text = text

            # Rule-based hits are available before enrichment returns
            self.preliminary_hits = match_allergens(text, tokens)
            self.insight = Pending()
            self._transition(PipelineState.MATCHING)
            try:
                insight = await self.insight_service.enrich(text, tokens)
            except Exception as e:
                logger.exception("Label enrichment failed unexpectedly")
                insight = Degraded(reason="error", message=str(e))
            self.insight = insight
        except asyncio.CancelledError:
            logger.info("Scan cancelled in %s", self._state.value)
            self._transition(PipelineState.IDLE)
            raise
        except ScanFailedError:
            raise
        except Exception as e:
            logger.exception("Scan failed in %s", self._state.value)
            raise self._fail(f"Failed to analyze image. Details: {e}", "scan_error") from e

        determination = reconcile(profile, self.preliminary_hits, insight)

        self._transition(PipelineState.PERSISTING)
        try:
            persistence = self.coordinator.persist(
                text=text,
                image_ref=image_ref,
                allergens=determination.hits,
                identity=identity,
            )
        except Exception:
            self._transition(PipelineState.IDLE)
            raise

        self.outcome = ScanOutcome(
            record=persistence.record,
            rule_hits=list(self.preliminary_hits),
            insight=insight,
            determination=determination,
            persistence=persistence,
            alert=describe_determination(determination, identity),
            daily_progress=daily_progress(persistence.history),
            has_unseen_notifications=self.coordinator.notifications.has_unseen,
        )
        logger.info(
            "Scan %s complete: %s (%d allergen(s))",
            persistence.record.id,
            determination.kind,
            len(determination.hits),
        )
        self._transition(PipelineState.COMPLETE)
        return self.outcome


# =============================================================================
# WIRING
# =============================================================================


@dataclass
class ScanServices:
    pipeline: ScanPipeline
    coordinator: ScanPersistenceCoordinator
    notifications: NotificationCounter
    session: SessionService
    remote_store: Optional[RemoteScanStore]

    @property
    def history(self):
        return self.coordinator.history


def build_scan_services(
    cache: Optional[LocalCache] = None,
    remote_store: Optional[RemoteScanStore] = None,
    ocr_service: Optional[OcrService] = None,
    insight_service: Optional[InsightService] = None,
    images: Optional[ImageService] = None,
) -> ScanServices:
    """Wire the default collaborators around one local cache."""
    cache = cache or get_local_cache()
    history = create_scan_history(cache)
    notifications = NotificationCounter(create_notification_feed(cache), cache)
    coordinator = ScanPersistenceCoordinator(history, notifications, remote_store)
    pipeline = ScanPipeline(
        ocr_service=ocr_service or OcrService(),
        insight_service=insight_service or InsightService(),
        coordinator=coordinator,
        images=images,
    )
    return ScanServices(
        pipeline=pipeline,
        coordinator=coordinator,
        notifications=notifications,
        session=SessionService(history, notifications, remote_store),
        remote_store=remote_store,
    )
