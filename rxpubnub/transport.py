"""HTTP transport boundary.

The engine needs exactly one thing from the network: issue a GET and hand
back the response, bounded by a timeout. :class:`HTTPTransport` does that
with ``httpx`` in both blocking and asyncio flavours.

Process-wide bootstrap (TLS trust store loading) happens once, behind a
lock, in :func:`initialize`. Call it from the main thread at start-up
before spawning workers; every context also calls it, which is a no-op after
the first time.
"""

import ssl
import threading

import certifi
import httpx

_ssl_context: ssl.SSLContext | None = None
_init_lock = threading.Lock()


def initialize() -> ssl.SSLContext:
    """Perform the one-time process bootstrap and return the shared TLS context.

    Idempotent and thread safe.
    """
    global _ssl_context

    # Quick path: already initialized
    if _ssl_context is not None:
        return _ssl_context

    with _init_lock:
        # Double-check after lock acquired
        if _ssl_context is None:
            ctx = ssl.create_default_context(cafile=certifi.where())
            ctx.check_hostname = True
            ctx.verify_mode = ssl.CERT_REQUIRED
            _ssl_context = ctx

    return _ssl_context


def is_initialized() -> bool:
    return _ssl_context is not None


class HTTPTransport:
    """Blocking and asyncio GET over a pair of lazily created httpx clients.

    Parameters
    ----------
    sync_transport, async_transport : httpx transports, optional
        Replace the network layer, e.g. with ``httpx.MockTransport`` in
        tests. When omitted the default pooled transports are used with
        the shared TLS context.
    """

    def __init__(
        self,
        *,
        sync_transport: httpx.BaseTransport | None = None,
        async_transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._sync_transport = sync_transport
        self._async_transport = async_transport
        self._client: httpx.Client | None = None
        self._async_client: httpx.AsyncClient | None = None
        self._lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _sync_client(self) -> httpx.Client:
        with self._lock:
            if self._closed:
                raise httpx.TransportError("transport is closed")
            if self._client is None:
                self._client = httpx.Client(
                    transport=self._sync_transport,
                    verify=initialize(),
                    follow_redirects=False,
                )
            return self._client

    def _aclient(self) -> httpx.AsyncClient:
        with self._lock:
            if self._closed:
                raise httpx.TransportError("transport is closed")
            if self._async_client is None:
                self._async_client = httpx.AsyncClient(
                    transport=self._async_transport,
                    verify=initialize(),
                    follow_redirects=False,
                )
            return self._async_client

    def get(self, url: str, params: dict[str, str], timeout: float) -> httpx.Response:
        """Blocking GET; raises ``httpx.TimeoutException`` / ``httpx.RequestError``."""
        return self._sync_client().get(url, params=params, timeout=httpx.Timeout(timeout))

    async def aget(self, url: str, params: dict[str, str], timeout: float) -> httpx.Response:
        """Asyncio GET; raises ``httpx.TimeoutException`` / ``httpx.RequestError``."""
        client = self._aclient()
        return await client.get(url, params=params, timeout=httpx.Timeout(timeout))

    def close(self) -> None:
        """Close the blocking client. The async client is closed by :meth:`aclose`."""
        with self._lock:
            self._closed = True
            client, self._client = self._client, None
        if client is not None:
            client.close()

    async def aclose(self) -> None:
        self.close()
        with self._lock:
            client, self._async_client = self._async_client, None
        if client is not None:
            await client.aclose()
