# ─────────────────────────────────────────────────────────────────────────────
# Cache Route Tests — status-code contract of {api_base}/cache/{key}
# ─────────────────────────────────────────────────────────────────────────────

import asyncio

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from httpx import AsyncClient
from structlog.testing import capture_logs

from cacheserver.cache.engine import EntryNotFoundError, ShardedCache
from cacheserver.config import Settings


CACHE = "/api/v1/cache"


class TestGet:
    def test_get_with_no_key(self, client: TestClient) -> None:
        response = client.get(f"{CACHE}/")
        assert response.status_code == 400

    def test_get_with_missing_key(self, client: TestClient) -> None:
        response = client.get(f"{CACHE}/doesNotExist")
        assert response.status_code == 404

    def test_get_key(self, client: TestClient, cache: ShardedCache) -> None:
        cache.set("getKey", b"123")
        response = client.get(f"{CACHE}/getKey")
        assert response.status_code == 200
        assert response.content == b"123"
        assert response.headers["content-type"] == "application/octet-stream"

    def test_key_is_last_path_segment(self, client: TestClient, cache: ShardedCache) -> None:
        cache.set("leaf", b"v")
        response = client.get(f"{CACHE}/some/nested/leaf")
        assert response.status_code == 200
        assert response.content == b"v"

    def test_empty_key_ignores_engine_state(self, client: TestClient, cache: ShardedCache) -> None:
        cache.set("anything", b"v")
        assert client.get(f"{CACHE}/").status_code == 400


class TestPut:
    def test_put_key(self, client: TestClient, cache: ShardedCache) -> None:
        response = client.put(f"{CACHE}/putKey", content=b"123")
        assert response.status_code == 201
        assert response.content == b""
        assert cache.get("putKey") == b"123"

    def test_put_empty_key(self, client: TestClient, cache: ShardedCache) -> None:
        response = client.put(f"{CACHE}/", content=b"123")
        assert response.status_code == 400
        assert len(cache) == 0

    def test_put_overwrites(self, client: TestClient) -> None:
        client.put(f"{CACHE}/key", content=b"first")
        client.put(f"{CACHE}/key", content=b"second")
        assert client.get(f"{CACHE}/key").content == b"second"

    def test_put_over_max_entry_size(self, client: TestClient) -> None:
        response = client.put(f"{CACHE}/putKey", content=b"a" * (8 * 1024 * 1024))
        assert response.status_code == 500
        assert client.get(f"{CACHE}/putKey").status_code == 404

    def test_put_over_shard_capacity(self, client_factory) -> None:
        settings = Settings(shards=1, max_entry_size=0, hard_max_cache_size_mb=1, log_json=False)
        client, cache = client_factory(settings)

        response = client.put(f"{CACHE}/putKey", content=b"a" * (8 * 1024 * 1024))

        assert response.status_code == 500
        with pytest.raises(EntryNotFoundError):
            cache.get("putKey")

    def test_put_over_body_limit(self, client_factory) -> None:
        settings = Settings(max_body_bytes=16, max_entry_size=0, log_json=False)
        client, cache = client_factory(settings)

        response = client.put(f"{CACHE}/putKey", content=b"a" * 17)

        assert response.status_code == 500
        assert len(cache) == 0

    def test_error_body_is_json(self, client: TestClient) -> None:
        body = client.put(f"{CACHE}/", content=b"123").json()
        assert body["type"] == "BadRequestError"


class TestDelete:
    def test_delete_empty_key(self, client: TestClient) -> None:
        response = client.request("DELETE", f"{CACHE}/", content=b"123")
        assert response.status_code == 404

    def test_delete_invalid_key(self, client: TestClient) -> None:
        response = client.request("DELETE", f"{CACHE}/invalidDeleteKey", content=b"123")
        assert response.status_code == 404

    def test_delete_key(self, client: TestClient, cache: ShardedCache) -> None:
        cache.set("testDeleteKey", b"123")
        response = client.request("DELETE", f"{CACHE}/testDeleteKey", content=b"123")
        assert response.status_code == 200
        assert response.content == b""
        assert client.get(f"{CACHE}/testDeleteKey").status_code == 404


class TestCacheIndex:
    def test_put_get_delete_cycle(self, client: TestClient) -> None:
        assert client.put(f"{CACHE}/testkey", content=b"123").status_code == 201
        assert client.get(f"{CACHE}/testkey").status_code == 200
        assert client.request("DELETE", f"{CACHE}/testkey", content=b"123").status_code == 200
        assert client.get(f"{CACHE}/testkey").status_code == 404

    def test_unsupported_method(self, client: TestClient) -> None:
        assert client.post(f"{CACHE}/testkey", content=b"123").status_code == 405

    def test_custom_api_base(self, client_factory) -> None:
        client, _ = client_factory(Settings(api_base="/kv/", log_json=False))
        assert client.put("/kv/cache/k", content=b"v").status_code == 201
        assert client.get("/kv/cache/k").content == b"v"
        assert client.get(f"{CACHE}/k").status_code == 404

    def test_request_id_header(self, client: TestClient) -> None:
        response = client.get(f"{CACHE}/doesNotExist")
        assert len(response.headers["X-Request-ID"]) == 8
        assert "X-Response-Time-Ms" in response.headers


class TestConcurrentRequests:
    async def test_parallel_put_then_get(self, async_client: AsyncClient) -> None:
        keys = [f"key-{i}" for i in range(50)]

        puts = await asyncio.gather(
            *(async_client.put(f"{CACHE}/{key}", content=key.encode()) for key in keys)
        )
        assert {r.status_code for r in puts} == {201}

        gets = await asyncio.gather(*(async_client.get(f"{CACHE}/{key}") for key in keys))
        assert [r.content for r in gets] == [key.encode() for key in keys]


class TestAccessLog:
    def test_logs_route_and_key(self, client: TestClient) -> None:
        with capture_logs() as logs:
            client.get(f"{CACHE}/nested/leaf")

        entry = next(e for e in logs if e["event"] == "request_completed")
        assert entry["method"] == "GET"
        assert entry["status"] == 404
        assert entry["route"] == "/api/v1/cache/{key}"
        assert entry["key"] == "leaf"

    def test_stats_route_has_no_key(self, client: TestClient) -> None:
        with capture_logs() as logs:
            client.request("PURGE", "/api/v1/stats")

        entry = next(e for e in logs if e["event"] == "request_completed")
        assert entry["route"] == "/api/v1/stats"
        assert "key" not in entry

    def test_health_is_not_logged(self, client: TestClient) -> None:
        with capture_logs() as logs:
            client.get("/health")

        assert not [e for e in logs if e["event"] == "request_completed"]


class TestPutClientDisconnect:
    """Client goes away before the body is complete: raw ASGI, no test client."""

    async def test_disconnect_mid_body_is_internal_error(
        self, app: FastAPI, cache: ShardedCache
    ) -> None:
        path = f"{CACHE}/putKey"
        scope = {
            "type": "http",
            "asgi": {"version": "3.0", "spec_version": "2.4"},
            "http_version": "1.1",
            "method": "PUT",
            "scheme": "http",
            "path": path,
            "raw_path": path.encode(),
            "root_path": "",
            "query_string": b"",
            "headers": [(b"host", b"cacheserver.test"), (b"content-length", b"1024")],
            "client": ("127.0.0.1", 50000),
            "server": ("cacheserver.test", 80),
        }
        incoming = [
            {"type": "http.request", "body": b"partial", "more_body": True},
            {"type": "http.disconnect"},
        ]
        never = asyncio.Event()
        sent: list[dict] = []

        async def receive() -> dict:
            if incoming:
                return incoming.pop(0)
            await never.wait()
            return {"type": "http.disconnect"}

        async def send(message: dict) -> None:
            sent.append(message)

        await asyncio.wait_for(app(scope, receive, send), timeout=5)

        start = next(m for m in sent if m["type"] == "http.response.start")
        assert start["status"] == 500
        assert len(cache) == 0
