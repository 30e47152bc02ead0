"""HTTP exchange for encoded GraphQL requests.

Wraps an injectable :class:`requests.Session`. The session is the only state
shared between calls; everything else lives on the stack of one
:meth:`Transport.execute` call.
"""

from __future__ import annotations

import logging
import socket
import threading
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional

import requests
from requests.adapters import HTTPAdapter
from requests.structures import CaseInsensitiveDict
from urllib3.connection import HTTPConnection, HTTPSConnection
from urllib3.connectionpool import HTTPConnectionPool, HTTPSConnectionPool

from .context import CallContext
from .encoding import EncodedBody
from .exceptions import CancelledError, DeadlineExceededError, GraphQLClientError, TransportError
from .request import FileAttachment

logger = logging.getLogger(__name__)

ACCEPT = "application/json; charset=utf-8"
CHUNK_SIZE = 64 * 1024


@dataclass
class RawResponse:
    """Fully read HTTP response."""

    status_code: int
    headers: CaseInsensitiveDict = field(default_factory=CaseInsensitiveDict)
    content: bytes = b""
    url: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


def release_attachments(attachments: Iterable[FileAttachment]) -> None:
    """Close every attachment stream that is still open."""
    for attachment in attachments:
        attachment.close()


class _Exchange:
    """Connection of one in-flight exchange, so another thread can abort it.

    ``abort`` shuts the socket down, which wakes a read blocked in the calling
    thread. Once ``finish`` runs the connection belongs to the pool again and
    is left alone.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._conn = None
        self._aborted = False
        self._finished = False

    @property
    def aborted(self) -> bool:
        return self._aborted

    def attach(self, conn) -> None:
        with self._lock:
            if self._finished:
                return
            self._conn = conn
            aborted = self._aborted
        if aborted:
            _shutdown(conn)

    def abort(self) -> None:
        with self._lock:
            if self._finished or self._aborted:
                return
            self._aborted = True
            conn = self._conn
        if conn is not None:
            _shutdown(conn)

    def finish(self) -> None:
        with self._lock:
            self._finished = True
            self._conn = None


def _shutdown(conn) -> None:
    sock = getattr(conn, "sock", None)
    if sock is None:
        return
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError as exc:
        # already closed by the peer or by urllib3
        logger.debug("socket shutdown on abort failed: %s", exc)


_current = threading.local()


class _ExchangeTracking:
    """Connection mixin that registers itself with the exchange of this thread."""

    def connect(self):
        super().connect()
        exchange = getattr(_current, "exchange", None)
        if exchange is not None and exchange.aborted:
            _shutdown(self)

    def request(self, *args, **kwargs):
        exchange = getattr(_current, "exchange", None)
        if exchange is not None:
            exchange.attach(self)
        return super().request(*args, **kwargs)


class _AbortableHTTPConnection(_ExchangeTracking, HTTPConnection):
    pass


class _AbortableHTTPSConnection(_ExchangeTracking, HTTPSConnection):
    pass


class _AbortableHTTPConnectionPool(HTTPConnectionPool):
    ConnectionCls = _AbortableHTTPConnection


class _AbortableHTTPSConnectionPool(HTTPSConnectionPool):
    ConnectionCls = _AbortableHTTPSConnection


class AbortableHTTPAdapter(HTTPAdapter):
    """HTTPAdapter whose connections can be shut down from another thread."""

    def init_poolmanager(self, *args, **kwargs):
        super().init_poolmanager(*args, **kwargs)
        self.poolmanager.pool_classes_by_scheme = {
            "http": _AbortableHTTPConnectionPool,
            "https": _AbortableHTTPSConnectionPool,
        }


def install_abortable_adapters(session: requests.Session) -> None:
    """Swap the session's stock http/https adapters for abortable ones.

    Adapters the caller mounted themselves are kept; exchanges through them
    notice cancellation only when a read returns.
    """
    for prefix in ("http://", "https://"):
        adapter = session.adapters.get(prefix)
        if type(adapter) is not HTTPAdapter:
            continue
        session.mount(
            prefix,
            AbortableHTTPAdapter(
                pool_connections=adapter._pool_connections,
                pool_maxsize=adapter._pool_maxsize,
                max_retries=adapter.max_retries,
                pool_block=adapter._pool_block,
            ),
        )


class Transport:
    """POSTs encoded bodies and reads the full response.

    The stock http/https adapters of the session are replaced by
    :class:`AbortableHTTPAdapter` so that cancelling the call context, or
    reaching its deadline, shuts the in-flight connection down.

    Args:
        session: Session used for every exchange; a new one is created when omitted.
        immediately_close_request_body: Release attachment streams as soon as
            the body has been framed instead of after the response is read.
        timeout: Socket timeout in seconds for calls whose context has no deadline.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        *,
        immediately_close_request_body: bool = False,
        timeout: Optional[float] = None,
    ) -> None:
        self._session = session if session is not None else requests.Session()
        install_abortable_adapters(self._session)
        self._immediately_close = immediately_close_request_body
        self._timeout = timeout

    @property
    def session(self) -> requests.Session:
        return self._session

    def execute(
        self,
        ctx: CallContext,
        url: str,
        encoded: EncodedBody,
        headers: Optional[Mapping[str, str]] = None,
    ) -> RawResponse:
        """Send ``encoded`` to ``url`` and return the response once fully read.

        Headers are layered lowest to highest: ``Accept``, the encoder's
        content type, then ``headers``.

        Raises:
            CancelledError: If ``ctx`` is cancelled before or during the exchange.
            DeadlineExceededError: If the deadline of ``ctx`` passes first.
            TransportError: For any other failure of the HTTP library.
        """
        outgoing: CaseInsensitiveDict = CaseInsensitiveDict({"Accept": ACCEPT})
        if encoded.content_type:
            outgoing["Content-Type"] = encoded.content_type
        outgoing.update(headers or {})

        try:
            ctx.check()
            prepared = self._prepare(url, encoded, outgoing)
            if self._immediately_close:
                release_attachments(encoded.attachments)
            return self._exchange(ctx, prepared)
        finally:
            release_attachments(encoded.attachments)

    def _prepare(self, url: str, encoded: EncodedBody, headers: CaseInsensitiveDict) -> requests.PreparedRequest:
        request = requests.Request(
            "POST",
            url,
            data=encoded.data,
            files=encoded.files,
            headers=dict(headers),
        )
        try:
            return self._session.prepare_request(request)
        except (requests.RequestException, ValueError) as exc:
            raise TransportError(f"building request for {url!r} failed: {exc}", exc) from exc

    def _exchange(self, ctx: CallContext, prepared: requests.PreparedRequest) -> RawResponse:
        timeout = self._timeout_for(ctx)
        logger.debug(">> %s %s (%s)", prepared.method, prepared.url, prepared.headers.get("Content-Type"))
        # proxies, verify and cert from the environment, as Session.request would
        settings = self._session.merge_environment_settings(prepared.url, {}, True, None, None)
        exchange = _Exchange()
        unregister = ctx.add_done_callback(exchange.abort)
        try:
            _current.exchange = exchange
            try:
                response = self._session.send(prepared, timeout=timeout, **settings)
            except requests.RequestException as exc:
                raise self._classify(ctx, exc, exchange.aborted) from exc
            finally:
                _current.exchange = None

            try:
                ctx.check()
                content = self._read_body(ctx, response, exchange)
                if exchange.aborted:
                    # the abort can end the body early without a read error
                    raise self._classify(ctx, None, aborted=True)
            finally:
                response.close()
        finally:
            unregister()
            exchange.finish()

        logger.debug("<< %s %s (%d bytes)", response.status_code, prepared.url, len(content))
        return RawResponse(
            status_code=response.status_code,
            headers=CaseInsensitiveDict(response.headers),
            content=content,
            url=response.url or prepared.url or "",
        )

    def _read_body(self, ctx: CallContext, response: requests.Response, exchange: _Exchange) -> bytes:
        chunks = []
        try:
            for chunk in response.iter_content(CHUNK_SIZE):
                ctx.check()
                chunks.append(chunk)
        except requests.RequestException as exc:
            raise self._classify(ctx, exc, exchange.aborted) from exc
        return b"".join(chunks)

    def _timeout_for(self, ctx: CallContext) -> Optional[float]:
        remaining = ctx.remaining()
        if remaining is None:
            return self._timeout
        if remaining <= 0:
            raise DeadlineExceededError()
        return remaining

    @staticmethod
    def _classify(
        ctx: CallContext, exc: Optional[requests.RequestException], aborted: bool = False
    ) -> GraphQLClientError:
        if ctx.cancelled:
            return CancelledError()
        if aborted:
            return DeadlineExceededError()
        if ctx.expired or (isinstance(exc, requests.Timeout) and ctx.deadline is not None):
            return DeadlineExceededError(f"deadline exceeded: {exc}")
        logger.warning("GraphQL request failed: %s", exc)
        return TransportError(f"request failed: {exc}", exc)
