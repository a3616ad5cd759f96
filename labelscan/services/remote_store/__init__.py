"""Remote scan store."""

from labelscan.services.remote_store.base import RemoteScanStore
from labelscan.services.remote_store.sql_store import SqlScanStore

__all__ = ["RemoteScanStore", "SqlScanStore"]
