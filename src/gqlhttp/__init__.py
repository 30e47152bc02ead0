"""GraphQL over HTTP client with JSON and multipart form encodings."""

from .client import Client
from .config import ClientConfig, ConfigurationError, ConfigValidationError, HttpConfig
from .context import CallContext
from .encoding import EncodedBody, Encoder, JSONEncoder, MultipartEncoder, encoder_for
from .exceptions import (
    CancelledError,
    DeadlineExceededError,
    DecodeError,
    GraphQLClientError,
    GraphQLError,
    HTTPStatusError,
    InvalidStateError,
    OperationAbortedError,
    TransportError,
    UnsupportedOperationError,
)
from .request import FileAttachment, Request, new_request
from .response import ClientResult, ErrorEntry, ResponseEnvelope, decode_response
from .transport import AbortableHTTPAdapter, RawResponse, Transport

__version__ = "0.1.0"

__all__ = [
    "AbortableHTTPAdapter",
    "CallContext",
    "CancelledError",
    "Client",
    "ClientConfig",
    "ClientResult",
    "ConfigValidationError",
    "ConfigurationError",
    "DeadlineExceededError",
    "DecodeError",
    "EncodedBody",
    "Encoder",
    "ErrorEntry",
    "FileAttachment",
    "GraphQLClientError",
    "GraphQLError",
    "HTTPStatusError",
    "HttpConfig",
    "InvalidStateError",
    "JSONEncoder",
    "MultipartEncoder",
    "OperationAbortedError",
    "RawResponse",
    "Request",
    "ResponseEnvelope",
    "Transport",
    "TransportError",
    "UnsupportedOperationError",
    "decode_response",
    "encoder_for",
    "new_request",
]
