"""Exception types raised by the GraphQL HTTP client.

Every error message starts with ``graphql: `` so protocol-level rejections
("your query was rejected") can be told apart from transport failures at a
glance. Errors raised after a response was received carry the best-effort
:class:`~gqlhttp.response.ClientResult` in ``result`` so callers can still
inspect headers and status.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, List, Optional

if TYPE_CHECKING:
    from .response import ClientResult


MESSAGE_PREFIX = "graphql: "


class GraphQLClientError(RuntimeError):
    """Base exception for GraphQL client errors."""

    def __init__(
        self,
        message: str,
        *,
        error_code: str = "graphql_client_error",
        result: Optional[ClientResult] = None,
    ) -> None:
        if not message.startswith(MESSAGE_PREFIX):
            message = MESSAGE_PREFIX + message
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.result = result


class InvalidStateError(GraphQLClientError):
    """Request cannot be sent with the current client configuration."""

    def __init__(self, message: str, *, error_code: str = "INVALID_STATE") -> None:
        super().__init__(message, error_code=error_code)


class UnsupportedOperationError(InvalidStateError):
    """Encoding mode does not support what the request asks for."""

    def __init__(self, message: str) -> None:
        super().__init__(message, error_code="UNSUPPORTED_OPERATION")


class OperationAbortedError(GraphQLClientError):
    """The caller's context stopped the call."""


class CancelledError(OperationAbortedError):
    """The call was cancelled by the caller."""

    def __init__(self, message: str = "call cancelled") -> None:
        super().__init__(message, error_code="CANCELLED")


class DeadlineExceededError(OperationAbortedError):
    """The call's deadline passed before the exchange completed."""

    def __init__(self, message: str = "deadline exceeded") -> None:
        super().__init__(message, error_code="DEADLINE_EXCEEDED")


class TransportError(GraphQLClientError):
    """The HTTP exchange failed.

    Attributes:
        cause: The underlying exception raised by the HTTP library.
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message, error_code="TRANSPORT_ERROR")
        self.cause = cause


class DecodeError(GraphQLClientError):
    """The response body could not be decoded."""

    def __init__(self, message: str, *, result: Optional[ClientResult] = None) -> None:
        super().__init__(message, error_code="DECODE_ERROR", result=result)


class HTTPStatusError(GraphQLClientError):
    """Non-2xx response without structured GraphQL errors."""

    def __init__(self, status_code: int, *, result: Optional[ClientResult] = None) -> None:
        super().__init__(
            f"server returned a non-200 status code: {status_code}",
            error_code="HTTP_STATUS",
            result=result,
        )
        self.status_code = status_code


class GraphQLError(GraphQLClientError):
    """The server answered with a populated ``errors`` list.

    The message is the first error's message; every entry is kept in
    ``errors`` for callers that want locations, paths or extensions.
    """

    def __init__(
        self,
        message: str,
        *,
        errors: Optional[List[Any]] = None,
        result: Optional[ClientResult] = None,
    ) -> None:
        # Server text is kept verbatim, even when it happens to start with the prefix.
        super().__init__(MESSAGE_PREFIX + message, error_code="GRAPHQL_ERROR", result=result)
        self.server_message = message
        self.errors = list(errors or [])
