"""API endpoints for scanning labels and browsing scan history."""

import logging
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile

from labelscan.api.dependencies import get_identity, get_scan_services, require_identity
from labelscan.services.allergen_matcher import highlight, rematch
from labelscan.services.daily_goal import DailyProgress, daily_progress
from labelscan.services.errors import PipelineBusyError, ScanFailedError
from labelscan.services.history_store import ScanRecord
from labelscan.services.insight_service import Degraded, InsightResult, Succeeded
from labelscan.services.scan_pipeline import ScanOutcome, ScanServices

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/scans", tags=["scans"])


# =============================================================================
# Serialization
# =============================================================================


def progress_to_dict(progress: DailyProgress) -> dict:
    return {
        "count": progress.count,
        "goal": progress.goal,
        "percent": progress.percent,
        "reached": progress.reached,
    }


def insight_to_dict(insight: InsightResult) -> dict:
    data = {"status": insight.status}
    if isinstance(insight, Succeeded):
        data["payload"] = insight.payload.model_dump()
    elif isinstance(insight, Degraded):
        data["reason"] = insight.reason
        data["message"] = insight.message
        data["raw_response"] = insight.raw_response
    return data


def outcome_to_dict(outcome: ScanOutcome) -> dict:
    return {
        "record": outcome.record.model_dump(mode="json"),
        "determination": outcome.determination.kind,
        "allergens": outcome.determination.hits,
        "rule_hits": outcome.rule_hits,
        "flagged": outcome.flagged,
        "alert": asdict(outcome.alert),
        "insight": insight_to_dict(outcome.insight),
        "saved_remotely": outcome.saved_remotely,
        "durable": outcome.persistence.durable,
        "daily_progress": progress_to_dict(outcome.daily_progress),
        "has_unseen_notifications": outcome.has_unseen_notifications,
    }


# =============================================================================
# Scanning
# =============================================================================


@router.post("")
async def create_scan(
    image: UploadFile = File(...),
    identity: Optional[str] = Depends(get_identity),
    services: ScanServices = Depends(get_scan_services),
):
    """
    Run one scan on an uploaded label photo.

    Returns 409 while another scan is in flight and 422 when no text could
    be extracted. Enrichment and storage problems never fail the request.
    """
    pipeline = services.pipeline
    if pipeline.busy:
        raise HTTPException(status_code=409, detail="A scan is already in progress")

    try:
        image_ref = await pipeline.images.save_scan_image(image)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    profile = services.session.load_profile(identity)

    try:
        outcome = await pipeline.scan(image_ref, profile)
    except PipelineBusyError as e:
        pipeline.images.delete_file(image_ref)
        raise HTTPException(status_code=409, detail=str(e))
    except ScanFailedError as e:
        pipeline.images.delete_file(image_ref)
        pipeline.dismiss()
        raise HTTPException(
            status_code=422, detail={"reason": e.reason, "message": str(e)}
        )

    response = outcome_to_dict(outcome)
    # The response is the result view; delivering it acknowledges the result
    pipeline.dismiss()
    return response


# =============================================================================
# History
# =============================================================================


def _history_item(record: ScanRecord, profile=None) -> dict:
    item = record.model_dump(mode="json")
    if profile is not None:
        item["matched_allergens"] = rematch(record.text, profile)
        item["highlights"] = [asdict(span) for span in highlight(record.text, profile.tokens)]
    return item


@router.get("/history")
async def get_history(
    rematch_hits: bool = Query(False, alias="rematch"),
    identity: Optional[str] = Depends(get_identity),
    services: ScanServices = Depends(get_scan_services),
):
    """
    Detailed scan history, newest first.

    Signed-in users get their newest remote scans. With ?rematch=true every
    record also carries hits and highlight spans for the current profile.
    """
    records = services.session.sync_history(identity)
    profile = services.session.load_profile(identity) if rematch_hits else None
    return {"items": [_history_item(record, profile) for record in records]}


@router.get("/daily-progress")
async def get_daily_progress(services: ScanServices = Depends(get_scan_services)):
    return progress_to_dict(daily_progress(services.history.load()))


@router.delete("/remote")
async def clear_remote_history(
    identity: str = Depends(require_identity),
    services: ScanServices = Depends(get_scan_services),
):
    """Delete every saved scan for the signed-in user, remote and local."""
    deleted = services.session.clear_remote_history(identity)
    return {"deleted": deleted}


@router.delete("/cache")
async def clear_app_cache(services: ScanServices = Depends(get_scan_services)):
    """Drop the cached history and the seen watermark; the feed stays."""
    services.session.clear_app_cache()
    return {"status": "cleared"}
