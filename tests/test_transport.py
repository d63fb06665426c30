from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

import aiohttp
import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp import test_utils

from hrmtime._transport import HttpTransport
from hrmtime.exceptions import FetchFailed


async def _time(_request: web.Request) -> web.Response:
    return web.json_response({"serverTime": "2026-03-01T08:30:00.000Z", "app": "HR Core", "version": "1.0.0"})


async def _broken(_request: web.Request) -> web.Response:
    return web.json_response({"message": "boom"}, status=500)


async def _not_json(_request: web.Request) -> web.Response:
    return web.Response(text="<html>maintenance</html>", content_type="text/html")


async def _array(_request: web.Request) -> web.Response:
    return web.json_response([1, 2, 3])


async def _invalid_utf8(_request: web.Request) -> web.Response:
    return web.Response(body=b'{"serverTime": "\xff\xfe"}', content_type="application/json", charset="utf-8")


async def _slow(_request: web.Request) -> web.Response:
    await asyncio.sleep(0.5)
    return web.json_response({})


@pytest_asyncio.fixture
async def server() -> AsyncIterator[test_utils.TestServer]:
    app = web.Application()
    app.router.add_get("/api/time", _time)
    app.router.add_get("/broken", _broken)
    app.router.add_get("/not-json", _not_json)
    app.router.add_get("/array", _array)
    app.router.add_get("/invalid-utf8", _invalid_utf8)
    app.router.add_get("/slow", _slow)
    async with test_utils.TestServer(app) as test_server:
        yield test_server


def _base_url(test_server: test_utils.TestServer) -> str:
    return str(test_server.make_url("")).rstrip("/")


@pytest.mark.asyncio
async def test_get_json_returns_object(server: test_utils.TestServer) -> None:
    async with aiohttp.ClientSession() as session:
        transport = HttpTransport(_base_url(server) + "/", session)
        body = await transport.get_json("/api/time")

    assert body["app"] == "HR Core"
    assert transport.base_url == _base_url(server)


@pytest.mark.asyncio
async def test_non_200_raises_fetch_failed(server: test_utils.TestServer) -> None:
    async with aiohttp.ClientSession() as session:
        transport = HttpTransport(_base_url(server), session)
        with pytest.raises(FetchFailed) as exc_info:
            await transport.get_json("/broken")

    assert exc_info.value.status_code == 500
    assert exc_info.value.endpoint == "/broken"


@pytest.mark.asyncio
@pytest.mark.parametrize("endpoint", ["/not-json", "/array"])
async def test_non_object_body_raises_fetch_failed(server: test_utils.TestServer, endpoint: str) -> None:
    async with aiohttp.ClientSession() as session:
        transport = HttpTransport(_base_url(server), session)
        with pytest.raises(FetchFailed) as exc_info:
            await transport.get_json(endpoint)

    assert exc_info.value.endpoint == endpoint


@pytest.mark.asyncio
async def test_timeout_raises_fetch_failed(server: test_utils.TestServer) -> None:
    async with aiohttp.ClientSession() as session:
        transport = HttpTransport(_base_url(server), session, request_timeout=0.05)
        with pytest.raises(FetchFailed):
            await transport.get_json("/slow")


@pytest.mark.asyncio
async def test_connection_error_raises_fetch_failed() -> None:
    app = web.Application()
    test_server = test_utils.TestServer(app)
    await test_server.start_server()
    base_url = _base_url(test_server)
    await test_server.close()

    async with aiohttp.ClientSession() as session:
        transport = HttpTransport(base_url, session)
        with pytest.raises(FetchFailed) as exc_info:
            await transport.get_json("/api/time")

    assert isinstance(exc_info.value.__cause__, aiohttp.ClientError)


@pytest.mark.asyncio
async def test_undecodable_body_raises_fetch_failed(server: test_utils.TestServer) -> None:
    async with aiohttp.ClientSession() as session:
        transport = HttpTransport(_base_url(server), session)
        with pytest.raises(FetchFailed) as exc_info:
            await transport.get_json("/invalid-utf8")

    assert exc_info.value.status_code == 200
    assert exc_info.value.endpoint == "/invalid-utf8"
    assert isinstance(exc_info.value.__cause__, UnicodeDecodeError)
