from cragsync.kaya.client import BaseKayaClient, KayaAPIError, KayaClient, KayaServerError
from cragsync.kaya.sync import (
    KayaSyncService,
    LocationFetchError,
    SyncCancelledError,
    SyncError,
    SyncInProgressError,
    SyncResult,
)

__all__ = [
    "BaseKayaClient",
    "KayaClient",
    "KayaAPIError",
    "KayaServerError",
    "KayaSyncService",
    "SyncResult",
    "SyncError",
    "SyncInProgressError",
    "LocationFetchError",
    "SyncCancelledError",
]
