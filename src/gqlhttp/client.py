"""GraphQL client: encode, send, decode."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

import requests

from .config import ClientConfig, http_config
from .context import CallContext
from .encoding import Encoder, encoder_for
from .exceptions import GraphQLClientError
from .request import Request
from .response import ClientResult, decode_response
from .transport import Transport, release_attachments

logger = logging.getLogger(__name__)


class Client:
    """Sends :class:`Request` objects to one GraphQL endpoint.

    The client holds no per-call state, so one instance can serve concurrent
    calls from several threads; the injected session is the only shared
    resource.

    Args:
        endpoint: GraphQL endpoint URL.
        session: HTTP session to send with (default: a new ``requests.Session``).
        use_multipart_form: Encode requests as ``multipart/form-data``; required
            for requests with files.
        immediately_close_request_body: Release attachment streams as soon as
            the body has been framed.
        default_headers: Headers added to every request; request headers win.
        timeout: Socket timeout for calls whose context has no deadline.
    """

    def __init__(
        self,
        endpoint: str,
        *,
        session: Optional[requests.Session] = None,
        use_multipart_form: bool = False,
        immediately_close_request_body: bool = False,
        default_headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self._config = ClientConfig(
            endpoint=endpoint,
            session=session,
            use_multipart_form=use_multipart_form,
            immediately_close_request_body=immediately_close_request_body,
            default_headers=dict(default_headers or {}),
            timeout=timeout,
        )
        self._encoder: Encoder = encoder_for(use_multipart_form)
        self._transport = Transport(
            session,
            immediately_close_request_body=immediately_close_request_body,
            timeout=self._config.timeout,
        )

    @classmethod
    def from_config(cls, config: ClientConfig) -> "Client":
        return cls(
            config.endpoint,
            session=config.session,
            use_multipart_form=config.use_multipart_form,
            immediately_close_request_body=config.immediately_close_request_body,
            default_headers=config.default_headers,
            timeout=config.timeout,
        )

    def __repr__(self) -> str:
        return f"Client(endpoint={self._config.endpoint!r}, encoder={self._encoder.name!r})"

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def endpoint(self) -> str:
        return self._config.endpoint

    def execute(self, request: Request, ctx: Optional[CallContext] = None, into: Any = None) -> ClientResult:
        """Run ``request`` and report any failure on the returned result.

        Args:
            request: The operation to send.
            ctx: Cancellation/deadline for this call (default: unbounded).
            into: Destination shape for ``data`` (see :func:`decode_response`).

        Returns:
            A :class:`ClientResult`. ``result.error`` holds the failure, if any;
            headers and status are set whenever a response arrived.
        """
        ctx = ctx or CallContext.background()
        attachments = request.files
        try:
            encoded = self._encoder.encode(request)
            raw = self._transport.execute(ctx, self._config.endpoint, encoded, self._headers_for(request))
        except GraphQLClientError as exc:
            logger.debug("GraphQL call to %s failed before a response: %s", self._config.endpoint, exc)
            result = ClientResult(error=exc)
            exc.result = result
            return result
        finally:
            release_attachments(attachments)
        return decode_response(raw, into)

    def run(self, request: Request, ctx: Optional[CallContext] = None, into: Any = None) -> ClientResult:
        """Run ``request`` and return the result.

        Raises:
            GraphQLClientError: Any failure; ``exc.result`` keeps the response
                headers and status when a response was received.
        """
        return self.execute(request, ctx, into).raise_for_error()

    def _headers_for(self, request: Request) -> dict:
        headers = {}
        if http_config.USER_AGENT:
            headers["User-Agent"] = http_config.USER_AGENT
        headers.update(self._config.default_headers)
        headers.update(request.headers)
        return headers
