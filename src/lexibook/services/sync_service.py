"""Synchronization of the local key-value store with the sync server.

The engine treats the local store as an opaque bag of keys: each key is one
remote row. Three strategies exist:

* upload: push every local key, the server upserts each one;
* download: pull every remote key and overwrite the local value;
* merge: union of both, the local value wins when a key exists on both sides,
  then the merged state is uploaded.

Auth keys are never sent. Background sync only ever uploads.
"""
import asyncio
import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

from lexibook.config import settings
from lexibook.errors import NetworkError, SyncFailed, Unauthenticated
from lexibook.monitoring import sync_duration, sync_operations
from lexibook.services.api_client import ApiClient
from lexibook.services.auth_service import AuthClient
from lexibook.storage import KeyValueStore, decode_value, encode_value

logger = logging.getLogger(__name__)


def _log_auto_sync_result(task: asyncio.Future) -> None:
    """Report the outcome of a background upload; failures are never raised."""
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.error("Auto sync failed: %s", error)
    else:
        logger.debug("Auto sync uploaded %s items", task.result())


class SyncService:
    """Reconciles the whole local store with the remote per-user table."""

    def __init__(
        self,
        store: KeyValueStore,
        auth: AuthClient,
        api: ApiClient,
        auto_sync_interval: Optional[float] = None,
        reserved_prefix: Optional[str] = None,
    ):
        """Initialize the service with the store, auth client and HTTP layer."""
        self.store = store
        self.auth = auth
        self.api = api
        self.auto_sync_interval = auto_sync_interval or settings.sync.auto_sync_interval
        self.reserved_prefix = reserved_prefix or settings.sync.reserved_prefix
        self._auto_sync_task: Optional[asyncio.Task] = None

    def _is_reserved(self, key: str) -> bool:
        return key.startswith(self.reserved_prefix)

    def local_snapshot(self) -> Dict[str, Any]:
        """Every syncable local key, values JSON-decoded where possible."""
        return {
            key: decode_value(value)
            for key, value in self.store.items()
            if not self._is_reserved(key)
        }

    def _write_local(self, data: Dict[str, Any]) -> int:
        items = {
            key: encode_value(value)
            for key, value in data.items()
            if not self._is_reserved(key)
        }
        self.store.set_many(items)
        return len(items)

    async def _send(
        self,
        operation: str,
        method: str,
        path: str,
        default_message: str,
        json: Any = None,
    ) -> Dict[str, Any]:
        """Run one authenticated sync request and return its JSON body."""
        if not self.auth.is_authenticated():
            raise Unauthenticated()
        headers = self.auth.get_auth_headers()

        try:
            response = await self.api.request(method, path, headers=headers, json=json)
        except NetworkError as e:
            sync_operations.labels(operation=operation, status="failed").inc()
            raise SyncFailed(e.message) from e

        if not response.is_success:
            sync_operations.labels(operation=operation, status="failed").inc()
            message = self.api.error_message(response, default_message)
            logger.error("Sync %s failed with %d: %s", operation, response.status_code, message)
            raise SyncFailed(message, response.status_code)

        try:
            body = response.json()
        except ValueError as e:
            sync_operations.labels(operation=operation, status="failed").inc()
            raise SyncFailed(f"{default_message}: malformed server response") from e

        sync_operations.labels(operation=operation, status="success").inc()
        return body

    async def _fetch_remote(self, operation: str, default_message: str) -> Dict[str, Any]:
        body = await self._send(operation, "GET", "/sync/download", default_message)
        data = body.get("data")
        if not isinstance(data, dict):
            raise SyncFailed(f"{default_message}: malformed server response")
        return data

    async def upload_all(self) -> int:
        """Push the whole local store. Returns the number of keys written remotely."""
        with sync_duration.labels(operation="upload").time():
            snapshot = self.local_snapshot()
            body = await self._send(
                "upload",
                "POST",
                "/sync/upload",
                "Data upload failed",
                json={"data": snapshot},
            )
        count = body.get("count", len(snapshot))
        logger.info("Uploaded %d items", count)
        return count

    async def download_all(self) -> int:
        """Replace local values with the server's. Returns the number of keys written."""
        with sync_duration.labels(operation="download").time():
            data = await self._fetch_remote("download", "Data download failed")
            # Written in one batch, so a failure leaves the local store untouched
            count = self._write_local(data)
        logger.info("Downloaded %d items", count)
        return count

    async def merge_data(self) -> int:
        """Merge remote into local with local precedence per key, then upload."""
        with sync_duration.labels(operation="merge").time():
            remote = await self._fetch_remote("merge", "Failed to fetch server data")
            merged = {**remote, **self.local_snapshot()}
            self._write_local(merged)
        count = await self.upload_all()
        logger.info("Merged %d remote and local items", len(merged))
        return count

    async def manual_sync(self) -> int:
        """User-triggered sync, which is an upload."""
        return await self.upload_all()

    async def sync_item(self, key: str, value: Any) -> bool:
        """Push one key. Skipped when logged out; failures are logged, not raised."""
        if not self.auth.is_authenticated() or self._is_reserved(key):
            return False
        try:
            await self._send("item", "POST", "/sync/item", "Item sync failed",
                             json={"key": key, "value": value})
        except SyncFailed as e:
            logger.error("Failed to sync item %s: %s", key, e)
            return False
        return True

    async def delete_remote_item(self, key: str) -> None:
        """Delete one key on the server."""
        await self._send("delete_item", "DELETE", f"/sync/item/{quote(key, safe='')}",
                         "Item delete failed")

    async def clear_remote(self) -> None:
        """Delete every key of the user on the server."""
        await self._send("delete_all", "DELETE", "/sync/all", "Failed to clear server data")

    @property
    def auto_sync_running(self) -> bool:
        return self._auto_sync_task is not None and not self._auto_sync_task.done()

    def start_auto_sync(self) -> bool:
        """Start periodic uploads. Must run inside an event loop.

        Returns False if auto sync is already running.
        """
        if self.auto_sync_running:
            return False
        self._auto_sync_task = asyncio.get_running_loop().create_task(self._run_auto_sync())
        logger.info("Auto sync started (every %s seconds)", self.auto_sync_interval)
        return True

    async def stop_auto_sync(self) -> None:
        """Stop future uploads. An upload already in flight is left to finish."""
        task, self._auto_sync_task = self._auto_sync_task, None
        if task is None:
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        logger.info("Auto sync stopped")

    async def _run_auto_sync(self) -> None:
        while True:
            await asyncio.sleep(self.auto_sync_interval)
            if not self.auth.is_authenticated():
                continue
            upload = asyncio.ensure_future(self.upload_all())
            upload.add_done_callback(_log_auto_sync_result)
            # Cancelling this wait does not cancel the upload itself
            await asyncio.wait({upload})
