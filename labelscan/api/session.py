"""API endpoints for session changes (sign in, sign out)."""

import logging

from fastapi import APIRouter, Depends

from labelscan.api.dependencies import get_scan_services, require_identity
from labelscan.services.scan_pipeline import ScanServices

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/session", tags=["session"])


@router.post("/sign-in")
async def sign_in(
    identity: str = Depends(require_identity),
    services: ScanServices = Depends(get_scan_services),
):
    """Load the user's allergy profile and pull their recent scans onto this device."""
    profile = services.session.load_profile(identity)
    history = services.session.sync_history(identity)
    logger.info("User %s signed in (%d scans in history)", identity, len(history))
    return {
        "user_id": identity,
        "allergies": list(profile.tokens),
        "allergies_configured": profile.is_configured,
        "history_count": len(history),
    }


@router.post("/sign-out")
async def sign_out(services: ScanServices = Depends(get_scan_services)):
    """Forget this device's history, notification feed and watermark."""
    services.session.sign_out()
    return {"status": "signed_out"}
