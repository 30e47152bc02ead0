"""GraphQL request model: query, variables, file attachments and headers."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Dict, List, Mapping, Optional

logger = logging.getLogger(__name__)


@dataclass
class FileAttachment:
    """A named byte stream sent as one multipart file part.

    The stream is owned by the attachment for the duration of one send and is
    consumed when the body is framed. It is closed at most once.
    """

    field_name: str
    file_name: str
    stream: BinaryIO
    _released: bool = field(default=False, init=False, repr=False, compare=False)

    @property
    def closed(self) -> bool:
        return self._released or bool(getattr(self.stream, "closed", False))

    def close(self) -> None:
        if self.closed:
            return
        self._released = True
        close = getattr(self.stream, "close", None)
        if close is None:
            return
        try:
            close()
        except OSError as exc:
            logger.warning("Closing attachment %r failed: %s", self.file_name, exc)


class Request:
    """A GraphQL operation to send with :meth:`gqlhttp.Client.run`.

    The query is opaque to the client and never validated. Variables keep
    insertion order: overwriting a variable replaces its value but keeps the
    position of its first insertion.
    """

    def __init__(
        self,
        query: str,
        variables: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._query = query
        self._variables: Dict[str, Any] = dict(variables or {})
        self._files: List[FileAttachment] = []
        self._headers: Dict[str, str] = dict(headers or {})

    def __repr__(self) -> str:
        return (
            f"Request(query={self._query!r}, variables={list(self._variables)!r}, "
            f"files={[f.field_name for f in self._files]!r})"
        )

    @property
    def query(self) -> str:
        return self._query

    @property
    def variables(self) -> Dict[str, Any]:
        return dict(self._variables)

    @property
    def files(self) -> List[FileAttachment]:
        return list(self._files)

    @property
    def headers(self) -> Dict[str, str]:
        return dict(self._headers)

    def set_variable(self, name: str, value: Any) -> "Request":
        """Insert or overwrite a variable. Returns the request for chaining."""
        self._variables[name] = value
        return self

    var = set_variable

    def add_file(self, field_name: str, file_name: str, stream: BinaryIO) -> "Request":
        """Attach a file, sent as the multipart part named ``field_name``.

        Only clients in multipart form mode can send requests with files; the
        mismatch is reported when the request is run.

        Raises:
            ValueError: If another attachment already uses ``field_name``.
        """
        if not field_name:
            raise ValueError("File field name must not be empty")
        if any(existing.field_name == field_name for existing in self._files):
            raise ValueError(f"A file is already attached as field {field_name!r}")
        self._files.append(FileAttachment(field_name=field_name, file_name=file_name, stream=stream))
        return self

    file = add_file

    def replace_file(self, field_name: str, stream: BinaryIO, file_name: Optional[str] = None) -> "Request":
        """Give the attachment ``field_name`` a new stream, keeping its position.

        Streams are released after every send, so this is how a request with
        files is run again. ``file_name`` defaults to the previous one.

        Raises:
            ValueError: If no file is attached as ``field_name``.
        """
        for index, existing in enumerate(self._files):
            if existing.field_name == field_name:
                self._files[index] = FileAttachment(
                    field_name=field_name,
                    file_name=existing.file_name if file_name is None else file_name,
                    stream=stream,
                )
                return self
        raise ValueError(f"No file is attached as field {field_name!r}")

    def set_header(self, name: str, value: str) -> "Request":
        """Set a header for this request only; it overrides client defaults."""
        self._headers[name] = value
        return self


def new_request(query: str) -> Request:
    """Create a request with no variables, files or headers."""
    return Request(query)
