"""Response envelope models and decoding.

Decoding moves through three steps: read the body, unwrap the HTTP status,
then classify the envelope as success or failure.

- Non-2xx: structured ``errors`` win (``GraphQLError``), otherwise the status
  code itself is reported (``HTTPStatusError``).
- 2xx: a body that is not JSON is a ``DecodeError``; a populated ``errors``
  list fails the call even when ``data`` is present; otherwise ``data`` is
  validated into the requested shape.

The returned :class:`ClientResult` always carries headers and status once a
response was received, failed or not.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError
from requests.structures import CaseInsensitiveDict

from .exceptions import DecodeError, GraphQLClientError, GraphQLError, HTTPStatusError
from .transport import RawResponse

logger = logging.getLogger(__name__)


class ErrorEntry(BaseModel):
    """One entry of the envelope's ``errors`` list.

    Only ``message`` is interpreted; ``locations``, ``path``, ``extensions``
    and any other server fields are kept as extras.
    """

    model_config = ConfigDict(extra="allow")

    message: str = ""


class ResponseEnvelope(BaseModel):
    """Top-level JSON object returned by a GraphQL server."""

    model_config = ConfigDict(extra="allow")

    data: Any = None
    errors: Optional[List[ErrorEntry]] = None

    @property
    def failed(self) -> bool:
        return bool(self.errors)

    @property
    def first_message(self) -> str:
        return self.errors[0].message if self.errors else ""


@dataclass
class ClientResult:
    """Outcome of one call: decoded data, response metadata and any error.

    ``headers`` and ``status_code`` are populated whenever a response was
    received, including failed calls; they stay empty/None only when the
    exchange never produced a response.
    """

    data: Any = None
    headers: CaseInsensitiveDict = field(default_factory=CaseInsensitiveDict)
    status_code: Optional[int] = None
    errors: List[ErrorEntry] = field(default_factory=list)
    error: Optional[GraphQLClientError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def raise_for_error(self) -> "ClientResult":
        """Raise the stored error, if any; return ``self`` otherwise."""
        if self.error is not None:
            raise self.error
        return self


def _fail(result: ClientResult, error: GraphQLClientError) -> ClientResult:
    error.result = result
    result.error = error
    return result


def _parse_envelope(content: bytes) -> ResponseEnvelope:
    try:
        payload = json.loads(content)
    except (ValueError, UnicodeDecodeError) as exc:
        raise DecodeError(f"decoding response: {exc}") from exc
    if not isinstance(payload, dict):
        raise DecodeError(f"decoding response: expected a JSON object, got {type(payload).__name__}")
    try:
        return ResponseEnvelope.model_validate(payload)
    except ValidationError as exc:
        raise DecodeError(f"decoding response: {exc}") from exc


def decode_response(raw: RawResponse, into: Any = None) -> ClientResult:
    """Classify ``raw`` and decode its ``data`` member.

    Args:
        raw: Fully read HTTP response.
        into: Destination shape for ``data``: any type accepted by
            :class:`pydantic.TypeAdapter`. None keeps the raw JSON value.

    Returns:
        A :class:`ClientResult`; on failure ``result.error`` is set and also
        references the result back through ``error.result``.
    """
    result = ClientResult(headers=CaseInsensitiveDict(raw.headers), status_code=raw.status_code)

    if not raw.ok:
        try:
            envelope = _parse_envelope(raw.content)
        except DecodeError:
            envelope = None
        if envelope is not None and envelope.failed:
            result.data = envelope.data
            result.errors = list(envelope.errors or [])
            logger.warning("GraphQL HTTP %d with errors: %s", raw.status_code, envelope.first_message)
            return _fail(result, GraphQLError(envelope.first_message, errors=result.errors))
        logger.warning("GraphQL HTTP %d: %s", raw.status_code, raw.content[:500])
        return _fail(result, HTTPStatusError(raw.status_code))

    try:
        envelope = _parse_envelope(raw.content)
    except DecodeError as exc:
        return _fail(result, exc)

    if envelope.failed:
        result.data = envelope.data
        result.errors = list(envelope.errors or [])
        logger.warning("GraphQL errors returned: %s", [entry.message for entry in result.errors])
        return _fail(result, GraphQLError(envelope.first_message, errors=result.errors))

    if into is None:
        result.data = envelope.data
        return result

    try:
        result.data = TypeAdapter(into).validate_python(envelope.data)
    except ValidationError as exc:
        result.data = envelope.data
        return _fail(result, DecodeError(f"decoding data: {exc}"))
    return result
