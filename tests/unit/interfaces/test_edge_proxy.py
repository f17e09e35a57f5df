"""Tests for the streaming edge proxy served through the catch-all route."""

from __future__ import annotations

import asyncio

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from vidrelay.domain.entities.streaming import CachedResponse
from vidrelay.infrastructure.cache.memory_adapter import MemoryCacheAdapter
from vidrelay.infrastructure.config.schema import ProxyConfig
from vidrelay.infrastructure.edge_proxy import CORS_HEADERS, EdgeProxy
from vidrelay.interfaces.api.edge.router import router as edge_router
from vidrelay.interfaces.app_state import AppState

def _client(store, cache, config, clock) -> TestClient:
    app = FastAPI()
    app.state = AppState()
    app.state.edge_proxy = EdgeProxy(store, cache, config, clock=clock)
    app.include_router(edge_router)
    return TestClient(app)


def _cached(cache: MemoryCacheAdapter, key: str) -> object:
    return asyncio.run(cache.get(key))


def _assert_cors(resp: httpx.Response) -> None:
    for name, value in CORS_HEADERS.items():
        assert resp.headers[name] == value


@pytest.fixture()
def client_for(memory_cache, proxy_config, clock):
    def _build(store, config: ProxyConfig | None = None) -> TestClient:
        return _client(store, memory_cache, config or proxy_config, clock)

    return _build


# ---------------------------------------------------------------------------
# Method, auth and routing
# ---------------------------------------------------------------------------


class TestPreflightAndMethods:
    def test_options_any_path(self, client_for, make_store) -> None:
        resp = client_for(make_store()).options("/anything/at/all")
        assert resp.status_code == 204
        _assert_cors(resp)

    @pytest.mark.parametrize("method", ["POST", "PUT", "DELETE", "PATCH"])
    def test_other_methods_rejected(
        self, client_for, make_store, valid_query, method: str
    ) -> None:
        resp = client_for(make_store()).request(method, f"/movie123?{valid_query}")
        assert resp.status_code == 405
        assert resp.text == "Method Not Allowed"
        _assert_cors(resp)


class TestAuth:
    def test_wrong_token(self, client_for, make_store, valid_query, proxy_config) -> None:
        query = valid_query.replace(proxy_config.stream_token, "nope")
        resp = client_for(make_store()).get(f"/movie123?{query}")
        assert resp.status_code == 403
        assert resp.text == "Invalid token"
        _assert_cors(resp)

    def test_missing_token(self, client_for, make_store, valid_query) -> None:
        exp_only = valid_query.split("&", 1)[1]
        resp = client_for(make_store()).get(f"/movie123?{exp_only}")
        assert resp.status_code == 403
        assert resp.text == "Invalid token"

    def test_unset_secret_rejects_everything(self, client_for, make_store, clock) -> None:
        config = ProxyConfig(stream_token=None, upstream_api_key="k")
        resp = client_for(make_store(), config).get(f"/?token=&exp={int(clock.now) + 60}")
        assert resp.status_code == 403

    @pytest.mark.parametrize("exp", ["", "abc", "nan", "0"])
    def test_unparseable_exp(self, client_for, make_store, proxy_config, exp: str) -> None:
        resp = client_for(make_store()).get(f"/?token={proxy_config.stream_token}&exp={exp}")
        assert resp.status_code == 403
        assert resp.text == "Link expired"
        _assert_cors(resp)

    @pytest.mark.parametrize("offset", [0, -10])
    def test_expired_exp(
        self, client_for, make_store, proxy_config, clock, offset: int
    ) -> None:
        exp = int(clock.now) + offset
        resp = client_for(make_store()).get(f"/?token={proxy_config.stream_token}&exp={exp}")
        assert resp.status_code == 403
        assert resp.text == "Link expired"
        _assert_cors(resp)

    def test_exp_one_second_ahead_is_accepted(
        self, client_for, make_store, proxy_config, clock
    ) -> None:
        exp = int(clock.now) + 1
        resp = client_for(make_store()).get(f"/?token={proxy_config.stream_token}&exp={exp}")
        assert resp.status_code == 200
        assert resp.text == "OK"


class TestRouting:
    @pytest.mark.parametrize("path", ["/", "/favicon.ico"])
    def test_liveness_paths(self, client_for, make_store, valid_query, path: str) -> None:
        store = make_store()
        resp = client_for(store).get(f"{path}?{valid_query}")
        assert resp.status_code == 200
        assert resp.text == "OK"
        assert store.calls == []

    @pytest.mark.parametrize("path", ["/a/b", "/subtitles/a/b"])
    def test_invalid_shape(self, client_for, make_store, valid_query, path: str) -> None:
        resp = client_for(make_store()).get(f"{path}?{valid_query}")
        assert resp.status_code == 400
        assert resp.text == "Invalid URL"
        _assert_cors(resp)

    def test_missing_upstream_key(self, client_for, make_store, valid_query) -> None:
        resp = client_for(make_store(configured=False)).get(f"/movie123?{valid_query}")
        assert resp.status_code == 500
        assert resp.text == "Missing UPSTREAM_API_KEY configuration"


# ---------------------------------------------------------------------------
# Video
# ---------------------------------------------------------------------------


class TestVideo:
    def test_full_load_streams_and_caches(
        self, client_for, make_store, valid_query, make_upstream, memory_cache
    ) -> None:
        body = bytes(range(256)) * 4096  # 1 MiB
        upstream = make_upstream(status_code=200, body=body, chunk_size=65536)
        store = make_store(upstream)

        resp = client_for(store).get(f"/movie123?{valid_query}")

        assert resp.status_code == 200
        assert resp.content == body
        assert resp.headers["content-type"] == "video/mp4"
        assert resp.headers["cache-control"] == "public, max-age=3600"
        assert resp.headers["content-disposition"] == "inline"
        assert resp.headers["accept-ranges"] == "bytes"
        assert resp.headers["x-content-type-options"] == "nosniff"
        _assert_cors(resp)
        assert store.calls == [("movie123", None)]
        assert upstream.closed

        entry = _cached(memory_cache, "http://testserver/movie123")
        assert isinstance(entry, CachedResponse)
        assert entry.body == body

    def test_full_load_cache_hit_skips_upstream(
        self, client_for, make_store, valid_query, make_upstream, proxy_config, clock
    ) -> None:
        store = make_store(make_upstream(body=b"0123456789"))
        client = client_for(store)

        client.get(f"/movie123?{valid_query}")
        later = f"token={proxy_config.stream_token}&exp={int(clock.now) + 7200}"
        second = client.get(f"/movie123?{later}")

        assert second.status_code == 200
        assert second.content == b"0123456789"
        assert second.headers["content-length"] == "10"
        _assert_cors(second)
        assert len(store.calls) == 1

    def test_ranged_request_bypasses_full_cache(
        self, client_for, make_store, valid_query, make_upstream, memory_cache
    ) -> None:
        full = make_upstream(body=b"0123456789")
        ranged = make_upstream(
            status_code=206,
            body=b"01",
            headers=[("Content-Range", "bytes 0-1/10"), ("Content-Type", "video/webm")],
        )
        store = make_store(full, ranged)
        client = client_for(store)

        client.get(f"/movie123?{valid_query}")
        resp = client.get(f"/movie123?{valid_query}", headers={"Range": "bytes=0-1"})

        assert resp.status_code == 206
        assert resp.content == b"01"
        assert resp.headers["content-range"] == "bytes 0-1/10"
        assert resp.headers["content-type"] == "video/webm"
        assert resp.headers["cache-control"] == "public, max-age=300"
        assert store.calls == [("movie123", None), ("movie123", "bytes=0-1")]
        assert _cached(memory_cache, "http://testserver/movie123?range=bytes=0-1") is None

    def test_each_range_forwarded_separately(
        self, client_for, make_store, valid_query, make_upstream
    ) -> None:
        store = make_store(
            make_upstream(status_code=206, body=b"a"),
            make_upstream(status_code=206, body=b"b"),
        )
        client = client_for(store)
        client.get(f"/m?{valid_query}", headers={"Range": "bytes=0-0"})
        client.get(f"/m?{valid_query}", headers={"Range": "bytes=1-1"})
        assert store.calls == [("m", "bytes=0-0"), ("m", "bytes=1-1")]

    def test_set_cookie_and_hop_headers_dropped(
        self, client_for, make_store, valid_query, make_upstream
    ) -> None:
        upstream = make_upstream(
            body=b"x",
            headers=[("Set-Cookie", "NID=1"), ("Keep-Alive", "timeout=5")],
        )
        resp = client_for(make_store(upstream)).get(f"/movie123?{valid_query}")
        assert "set-cookie" not in resp.headers
        assert "keep-alive" not in resp.headers

    def test_upstream_404_propagates_and_is_remembered(
        self, client_for, make_store, valid_query, make_upstream, clock
    ) -> None:
        store = make_store(make_upstream(status_code=404), make_upstream(status_code=404))
        client = client_for(store)

        first = client.get(f"/gone?{valid_query}")
        second = client.get(f"/gone?{valid_query}")

        assert first.status_code == second.status_code == 404
        assert first.text == "Video unavailable"
        _assert_cors(second)
        assert len(store.calls) == 1

        clock.advance(60)
        client.get(f"/gone?{valid_query}")
        assert len(store.calls) == 2

    def test_upstream_5xx_is_never_remembered(
        self, client_for, make_store, valid_query, make_upstream
    ) -> None:
        store = make_store(make_upstream(status_code=503), make_upstream(status_code=503))
        client = client_for(store)

        assert client.get(f"/m?{valid_query}").status_code == 503
        assert client.get(f"/m?{valid_query}").status_code == 503
        assert len(store.calls) == 2

    def test_upstream_fetch_error_is_502(self, client_for, make_store, valid_query) -> None:
        store = make_store(httpx.ConnectError("refused"))
        resp = client_for(store).get(f"/movie123?{valid_query}")
        assert resp.status_code == 502
        assert resp.text == "Video unavailable"
        _assert_cors(resp)

    def test_oversized_body_is_streamed_not_cached(
        self, client_for, make_store, valid_query, make_upstream, memory_cache, proxy_config
    ) -> None:
        config = proxy_config.model_copy(update={"max_cached_body_bytes": 8})
        store = make_store(make_upstream(body=b"0123456789", chunk_size=3))

        resp = client_for(store, config).get(f"/movie123?{valid_query}")

        assert resp.content == b"0123456789"
        assert _cached(memory_cache, "http://testserver/movie123") is None

    def test_head_returns_headers_only(
        self, client_for, make_store, valid_query, make_upstream
    ) -> None:
        upstream = make_upstream(body=b"0123456789", headers=[("Content-Length", "10")])
        resp = client_for(make_store(upstream)).head(f"/movie123?{valid_query}")

        assert resp.status_code == 200
        assert resp.content == b""
        assert resp.headers["content-length"] == "10"
        assert resp.headers["content-type"] == "video/mp4"
        assert upstream.closed
        assert upstream.chunks_sent == 0


# ---------------------------------------------------------------------------
# Subtitles
# ---------------------------------------------------------------------------


class TestSubtitles:
    def test_srt_converted_and_cached(
        self, client_for, make_store, valid_query, make_upstream, memory_cache
    ) -> None:
        upstream = make_upstream(body=b"1\n00:00:01,000 --> 00:00:02,000\r\nHello\r\n\r\n")
        store = make_store(upstream)
        client = client_for(store)
        url = f"/subtitles/abc.srt?{valid_query}"

        resp = client.get(url)

        assert resp.status_code == 200
        assert resp.text == "WEBVTT\n\n00:00:01.000 --> 00:00:02.000\nHello\n\n"
        assert resp.headers["content-type"] == "text/vtt; charset=utf-8"
        assert resp.headers["cache-control"] == "public, max-age=86400"
        _assert_cors(resp)
        assert store.calls == [("abc", None)]
        assert upstream.closed
        assert isinstance(_cached(memory_cache, f"http://testserver{url}"), CachedResponse)

        again = client.get(url)
        assert again.text == resp.text
        assert len(store.calls) == 1

    def test_vtt_passed_through(
        self, client_for, make_store, valid_query, make_upstream
    ) -> None:
        vtt = "WEBVTT\n\n00:00:01.000 --> 00:00:02.000\nHi\n"
        store = make_store(make_upstream(body=vtt.encode()))
        resp = client_for(store).get(f"/subtitles/abc.vtt?{valid_query}")
        assert resp.text == vtt
        assert store.calls == [("abc", None)]

    def test_upstream_miss(self, client_for, make_store, valid_query, make_upstream) -> None:
        store = make_store(make_upstream(status_code=403))
        resp = client_for(store).get(f"/subtitles/abc.srt?{valid_query}")
        assert resp.status_code == 404
        assert resp.text == "Subtitle unavailable"
        _assert_cors(resp)


# ---------------------------------------------------------------------------
# Internal errors
# ---------------------------------------------------------------------------


class TestInternalErrors:
    def test_message_exposed_when_enabled(self, client_for, make_store, valid_query) -> None:
        resp = client_for(make_store(RuntimeError("boom"))).get(f"/movie123?{valid_query}")
        assert resp.status_code == 500
        assert resp.text == "Worker error: boom"
        _assert_cors(resp)

    def test_message_hidden_when_disabled(
        self, client_for, make_store, valid_query, proxy_config
    ) -> None:
        config = proxy_config.model_copy(update={"expose_error_details": False})
        resp = client_for(make_store(RuntimeError("secret path")), config).get(
            f"/movie123?{valid_query}"
        )
        assert resp.status_code == 500
        assert resp.text == "Internal error"
