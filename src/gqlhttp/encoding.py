"""Request body encoders.

Two strategies share the :class:`Encoder` interface and are picked once, when
the client is built:

- :class:`JSONEncoder` sends ``{"query": ..., "variables": ...}`` as an
  ``application/json`` body and refuses requests with files.
- :class:`MultipartEncoder` sends a ``multipart/form-data`` body laid out as
  ``query``, ``variables`` (when set), ``operations``, ``map``, then one
  part per attached file.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .exceptions import InvalidStateError, UnsupportedOperationError
from .request import FileAttachment, Request

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"

# requests-style multipart part: (part name, (file name, content[, content type]))
FilePart = Tuple[str, Tuple[Any, ...]]


@dataclass
class EncodedBody:
    """Transport-ready payload produced by an encoder.

    Exactly one of ``data`` and ``files`` is set. ``content_type`` is None for
    multipart bodies, whose boundary is only known once the body is framed.
    """

    data: Optional[bytes] = None
    files: Optional[List[FilePart]] = None
    content_type: Optional[str] = None
    attachments: List[FileAttachment] = field(default_factory=list)

    @property
    def is_multipart(self) -> bool:
        return self.files is not None


def _dumps(value: Any, **kwargs: Any) -> str:
    try:
        return json.dumps(value, **kwargs)
    except (TypeError, ValueError) as exc:
        raise InvalidStateError(f"cannot encode request as JSON: {exc}") from exc


class Encoder(ABC):
    """Turns a :class:`Request` into an :class:`EncodedBody`."""

    name = "encoder"

    @abstractmethod
    def encode(self, request: Request) -> EncodedBody:
        """Encode ``request``.

        Raises:
            InvalidStateError: If the request cannot be encoded in this mode.
        """


class JSONEncoder(Encoder):
    """Plain JSON POST body."""

    name = "json"

    def encode(self, request: Request) -> EncodedBody:
        files = request.files
        if files:
            raise UnsupportedOperationError(
                "cannot send files without multipart form mode; "
                f"{len(files)} file(s) attached: {', '.join(f.field_name for f in files)}"
            )
        payload = {"query": request.query, "variables": request.variables}
        return EncodedBody(data=_dumps(payload).encode("utf-8"), content_type=JSON_CONTENT_TYPE)


class MultipartEncoder(Encoder):
    """GraphQL multipart request layout.

    File variables are addressed by their top-level name only: a file attached
    as ``field_name`` is sent in the part ``field_name``, mapped to
    ``variables.<field_name>``, and the variable itself is ``null`` in
    ``operations``.

    Raises InvalidStateError for an attachment whose stream is closed, for
    instance one released by an earlier call.
    """

    name = "multipart"

    def encode(self, request: Request) -> EncodedBody:
        attachments = request.files
        for attachment in attachments:
            if attachment.closed:
                raise InvalidStateError(
                    f"file {attachment.field_name!r} has a closed stream; "
                    "supply a new one with Request.replace_file"
                )
        variables = request.variables
        file_map: Dict[str, List[str]] = {}
        for attachment in attachments:
            # keeps the caller's position when the variable was already set
            variables[attachment.field_name] = None
            file_map[attachment.field_name] = [f"variables.{attachment.field_name}"]

        operations = _dumps({"query": request.query, "variables": variables})
        # plain form fields for servers that read the operation from the form
        parts: List[FilePart] = [("query", (None, request.query))]
        if variables:
            parts.append(("variables", (None, _dumps(variables, separators=(",", ":")) + "\n")))
        parts.append(("operations", (None, operations, JSON_CONTENT_TYPE)))
        parts.append(("map", (None, _dumps(file_map), JSON_CONTENT_TYPE)))
        for attachment in attachments:
            parts.append((attachment.field_name, (attachment.file_name, attachment.stream)))

        logger.debug("Encoded multipart request with %d file part(s)", len(attachments))
        return EncodedBody(files=parts, attachments=attachments)


def encoder_for(use_multipart_form: bool) -> Encoder:
    return MultipartEncoder() if use_multipart_form else JSONEncoder()
