"""Tests for the HTTP transport boundary and process bootstrap."""

import asyncio
import ssl
import threading

import httpx
import pytest

from rxpubnub import HTTPTransport, initialize
from rxpubnub.transport import is_initialized


def test_initialize_is_idempotent_and_thread_safe():
    results = []
    threads = [threading.Thread(target=lambda: results.append(initialize())) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert is_initialized()
    assert all(ctx is results[0] for ctx in results)
    assert isinstance(results[0], ssl.SSLContext)
    assert initialize() is results[0]


def test_get_passes_params_and_timeout():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["timeout"] = request.extensions["timeout"]
        return httpx.Response(200, json=[1])

    transport = HTTPTransport(sync_transport=httpx.MockTransport(handler))
    response = transport.get("http://example.test/time/0", {"uuid": "u"}, 2.5)

    assert response.json() == [1]
    assert seen["url"] == "http://example.test/time/0?uuid=u"
    assert seen["timeout"]["read"] == 2.5
    transport.close()


def test_closed_transport_raises_transport_error():
    transport = HTTPTransport(sync_transport=httpx.MockTransport(lambda r: httpx.Response(200)))
    transport.close()
    assert transport.closed
    with pytest.raises(httpx.TransportError):
        transport.get("http://example.test/", {}, 1.0)


def test_async_get():
    transport = HTTPTransport(async_transport=httpx.MockTransport(lambda r: httpx.Response(200, json=[2])))

    async def main():
        try:
            return (await transport.aget("http://example.test/time/0", {}, 1.0)).json()
        finally:
            await transport.aclose()

    assert asyncio.run(main()) == [2]
