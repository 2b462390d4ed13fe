from moodapp.worker.runtime import (
    CACHE_NAME,
    PRECACHE_URLS,
    SYNC_TAG,
    InvalidStateError,
    ServiceWorkerRuntime,
    WorkerState,
)

__all__ = [
    "CACHE_NAME",
    "PRECACHE_URLS",
    "SYNC_TAG",
    "InvalidStateError",
    "ServiceWorkerRuntime",
    "WorkerState",
]
