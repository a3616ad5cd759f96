"""API endpoints for the notification bell."""

from fastapi import APIRouter, Depends

from labelscan.api.dependencies import get_scan_services
from labelscan.services.scan_pipeline import ScanServices

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("")
async def list_notifications(services: ScanServices = Depends(get_scan_services)):
    notifications = services.notifications
    return {
        "items": [entry.model_dump(mode="json") for entry in notifications.feed.load()],
        "has_unseen": notifications.has_unseen,
        "unseen_count": notifications.unseen_count,
    }


@router.post("/seen")
async def mark_seen(services: ScanServices = Depends(get_scan_services)):
    """User opened the notification panel."""
    seen = services.notifications.mark_seen()
    return {"seen": seen, "has_unseen": False}


@router.delete("")
async def clear_notifications(services: ScanServices = Depends(get_scan_services)):
    services.notifications.clear()
    return {"status": "cleared"}
