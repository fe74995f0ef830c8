"""Tests for the sync engine."""
import asyncio
import json
from typing import List

import httpx
import pytest

from lexibook.config import AUTH_TOKEN_KEY, AUTH_USER_KEY
from lexibook.errors import SyncFailed, Unauthenticated
from lexibook.services.api_client import ApiClient
from lexibook.services.auth_service import AuthClient
from lexibook.services.sync_service import SyncService
from lexibook.storage import MemoryKeyValueStore


def logged_in(store: MemoryKeyValueStore) -> MemoryKeyValueStore:
    store.set_many({AUTH_TOKEN_KEY: "token", AUTH_USER_KEY: json.dumps({"id": 1})})
    return store


def make_sync(store: MemoryKeyValueStore, api: ApiClient, **kwargs) -> SyncService:
    return SyncService(store, AuthClient(store, api), api, **kwargs)


def mock_api(handler) -> ApiClient:
    return ApiClient(
        "http://testserver/api",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


async def registered(store: MemoryKeyValueStore, api: ApiClient, account) -> SyncService:
    """Sync engine of a freshly registered user."""
    sync = make_sync(store, api)
    await sync.auth.register(**account)
    return sync


@pytest.mark.asyncio
async def test_upload_excludes_auth_keys(api: ApiClient, account) -> None:
    """Test that auth keys never reach the server."""
    store = MemoryKeyValueStore({"vocab_book": "[1, 2]", "note": "plain"})
    sync = await registered(store, api, account)

    assert await sync.upload_all() == 2

    other = MemoryKeyValueStore()
    other_sync = make_sync(other, api)
    await other_sync.auth.login(account["email"], account["password"])
    assert await other_sync.download_all() == 2
    assert other.get_item("vocab_book") == "[1, 2]"
    assert other.get_item("note") == "plain"


@pytest.mark.asyncio
async def test_download_overwrites_local(api: ApiClient, account) -> None:
    """Test that remote values replace local ones, other keys untouched."""
    device = MemoryKeyValueStore({"A": "2", "B": "3"})
    device_sync = await registered(device, api, account)
    await device_sync.upload_all()

    store = MemoryKeyValueStore({"A": "1", "Z": "local only"})
    sync = make_sync(store, api)
    await sync.auth.login(account["email"], account["password"])

    assert await sync.download_all() == 2
    assert store.get_item("A") == "2"
    assert store.get_item("B") == "3"
    assert store.get_item("Z") == "local only"


@pytest.mark.asyncio
async def test_merge_prefers_local(api: ApiClient, account) -> None:
    """Test that merging keeps local values and uploads the union."""
    device = MemoryKeyValueStore({"B": "9", "C": "3"})
    device_sync = await registered(device, api, account)
    await device_sync.upload_all()

    store = MemoryKeyValueStore({"A": "1", "B": "2"})
    sync = make_sync(store, api)
    await sync.auth.login(account["email"], account["password"])

    assert await sync.merge_data() == 3
    assert sync.local_snapshot() == {"A": 1, "B": 2, "C": 3}

    await device_sync.download_all()
    assert device_sync.local_snapshot() == {"A": 1, "B": 2, "C": 3}


@pytest.mark.asyncio
async def test_item_operations(api: ApiClient, account) -> None:
    """Test single-key push and remote deletes."""
    store = MemoryKeyValueStore()
    sync = await registered(store, api, account)

    assert await sync.sync_item("wrong_questions", [{"id": "q1"}])
    assert not await sync.sync_item("auth-token", "secret")
    assert await sync.sync_item("a/b", "x")

    await sync.delete_remote_item("a/b")
    await sync.download_all()
    assert json.loads(store.get_item("wrong_questions")) == [{"id": "q1"}]
    assert store.get_item("a/b") is None

    await sync.clear_remote()
    fresh = MemoryKeyValueStore()
    fresh_sync = make_sync(fresh, api)
    await fresh_sync.auth.login(account["email"], account["password"])
    assert await fresh_sync.download_all() == 0


@pytest.mark.asyncio
async def test_requires_login_before_any_request(store: MemoryKeyValueStore) -> None:
    """Test that logged-out sync fails without touching the network."""
    calls: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={"data": {}, "count": 0})

    sync = make_sync(store, mock_api(handler))
    for operation in (sync.upload_all, sync.download_all, sync.merge_data, sync.manual_sync):
        with pytest.raises(Unauthenticated, match="Please log in first"):
            await operation()
    assert not await sync.sync_item("a", 1)
    assert calls == []


@pytest.mark.asyncio
async def test_server_error_message(store: MemoryKeyValueStore) -> None:
    """Test that server errors surface their message and keep local data."""
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"error": "disk full"})

    store.set_item("A", "1")
    sync = make_sync(logged_in(store), mock_api(handler))

    with pytest.raises(SyncFailed, match="disk full") as exc_info:
        await sync.upload_all()
    assert exc_info.value.status_code == 500

    with pytest.raises(SyncFailed):
        await sync.download_all()
    assert store.get_item("A") == "1"


@pytest.mark.asyncio
async def test_default_error_message(store: MemoryKeyValueStore) -> None:
    """Test the fallback message when the server gives none."""
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="Bad gateway")

    sync = make_sync(logged_in(store), mock_api(handler))
    with pytest.raises(SyncFailed, match="Data download failed"):
        await sync.download_all()


@pytest.mark.asyncio
async def test_network_failure(store: MemoryKeyValueStore) -> None:
    """Test that an unreachable server is a sync failure."""
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("Connection refused", request=request)

    sync = make_sync(logged_in(store), mock_api(handler))
    with pytest.raises(SyncFailed, match="Unable to connect"):
        await sync.upload_all()


@pytest.mark.asyncio
async def test_sync_item_failure_is_logged(store: MemoryKeyValueStore, caplog) -> None:
    """Test that a failing single-key push is reported, not raised."""
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"error": "boom"})

    sync = make_sync(logged_in(store), mock_api(handler))
    assert not await sync.sync_item("a", 1)
    assert "Failed to sync item a" in caplog.text


@pytest.mark.asyncio
async def test_auto_sync(store: MemoryKeyValueStore) -> None:
    """Test periodic uploads and a single running loop."""
    uploads: List[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        uploads.append(body["data"])
        return httpx.Response(200, json={"message": "ok", "count": len(body["data"])})

    store.set_item("A", "1")
    sync = make_sync(logged_in(store), mock_api(handler), auto_sync_interval=0.01)

    assert sync.start_auto_sync()
    assert not sync.start_auto_sync()
    assert sync.auto_sync_running

    for _ in range(100):
        if len(uploads) >= 2:
            break
        await asyncio.sleep(0.01)
    await sync.stop_auto_sync()

    assert not sync.auto_sync_running
    assert len(uploads) >= 2
    assert uploads[0] == {"A": 1}

    count = len(uploads)
    await asyncio.sleep(0.05)
    assert len(uploads) == count


@pytest.mark.asyncio
async def test_auto_sync_failures_are_logged(store: MemoryKeyValueStore, caplog) -> None:
    """Test that a failing background upload keeps the loop alive."""
    attempts: List[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(1)
        return httpx.Response(500, json={"error": "boom"})

    sync = make_sync(logged_in(store), mock_api(handler), auto_sync_interval=0.01)
    sync.start_auto_sync()
    for _ in range(100):
        if len(attempts) >= 2:
            break
        await asyncio.sleep(0.01)

    assert sync.auto_sync_running
    await sync.stop_auto_sync()
    assert len(attempts) >= 2
    assert "Auto sync failed: boom" in caplog.text


@pytest.mark.asyncio
async def test_auto_sync_skips_when_logged_out(store: MemoryKeyValueStore) -> None:
    """Test that no upload is attempted without a login."""
    calls: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={"count": 0})

    sync = make_sync(store, mock_api(handler), auto_sync_interval=0.01)
    sync.start_auto_sync()
    await asyncio.sleep(0.05)
    await sync.stop_auto_sync()
    assert calls == []


@pytest.mark.asyncio
async def test_stop_lets_upload_finish(store: MemoryKeyValueStore) -> None:
    """Test that stopping does not abort an upload in flight."""
    started = asyncio.Event()
    release = asyncio.Event()
    finished: List[int] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        started.set()
        await release.wait()
        finished.append(1)
        return httpx.Response(200, json={"count": 1})

    store.set_item("A", "1")
    sync = make_sync(logged_in(store), mock_api(handler), auto_sync_interval=0.01)
    sync.start_auto_sync()
    await asyncio.wait_for(started.wait(), timeout=1)

    await sync.stop_auto_sync()
    release.set()
    for _ in range(100):
        if finished:
            break
        await asyncio.sleep(0.01)
    assert finished == [1]


if __name__ == "__main__":
    pytest.main([__file__])
