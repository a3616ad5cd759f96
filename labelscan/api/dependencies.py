"""FastAPI dependencies for the scan services and the caller's identity."""
from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from labelscan.services.remote_store import SqlScanStore
from labelscan.services.scan_pipeline import ScanServices, build_scan_services


@lru_cache
def get_scan_services() -> ScanServices:
    """
    The process-wide scan services.

    One pipeline and one local cache serve the whole process, the same way
    one app instance serves one device.
    """
    return build_scan_services(remote_store=SqlScanStore())


async def get_identity(x_user_id: Optional[str] = Header(None)) -> Optional[str]:
    """
    Identity of the signed-in user, or None for an anonymous session.

    Authentication happens upstream; the gateway forwards the user id.
    """
    if x_user_id is None:
        return None
    return x_user_id.strip() or None


async def require_identity(identity: Optional[str] = Depends(get_identity)) -> str:
    """Raises 401 for anonymous sessions."""
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated"
        )
    return identity
