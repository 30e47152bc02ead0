"""Shared test doubles for the GraphQL client tests."""

from __future__ import annotations

import io
import json
from email.parser import BytesParser
from email.policy import HTTP
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests
from requests.structures import CaseInsensitiveDict

JSON_HEADERS = {"Content-Type": "application/json"}

Handler = Callable[[requests.PreparedRequest], Tuple[int, Any, Optional[Dict[str, str]]]]


def json_reply(payload: Any, status: int = 200, headers: Optional[Dict[str, str]] = None):
    """Handler that always answers with ``payload`` encoded as JSON."""

    def handler(_request):
        return status, json.dumps(payload), headers if headers is not None else dict(JSON_HEADERS)

    return handler


class FakeSession(requests.Session):
    """Session whose ``send`` answers from a handler instead of the network."""

    def __init__(self, handler: Handler):
        super().__init__()
        self.handler = handler
        self.calls: List[Dict[str, Any]] = []

    def send(self, request, **kwargs):
        self.calls.append({"request": request, **kwargs})
        status, body, headers = self.handler(request)
        if isinstance(body, str):
            body = body.encode("utf-8")

        response = requests.Response()
        response.status_code = status
        response.headers = CaseInsensitiveDict(headers or {})
        response.raw = io.BytesIO(body)
        response.url = request.url
        response.request = request
        return response

    @property
    def last_request(self) -> requests.PreparedRequest:
        return self.calls[-1]["request"]


class TrackingStream(io.BytesIO):
    """Byte stream that counts how often it was closed."""

    def __init__(self, data: bytes = b""):
        super().__init__(data)
        self.close_calls = 0

    def close(self):
        self.close_calls += 1
        super().close()


class MultipartPart:
    def __init__(self, name: Optional[str], filename: Optional[str], content: bytes, content_type: str):
        self.name = name
        self.filename = filename
        self.content = content
        self.content_type = content_type

    def json(self) -> Any:
        return json.loads(self.content)


def parse_multipart(content_type: str, body: bytes) -> List[MultipartPart]:
    """Split a ``multipart/form-data`` body the way a server would."""
    raw = b"Content-Type: " + content_type.encode("ascii") + b"\r\n\r\n" + body
    message = BytesParser(policy=HTTP).parsebytes(raw)
    assert message.is_multipart(), "body is not multipart"
    parts = []
    for part in message.iter_parts():
        parts.append(
            MultipartPart(
                name=part.get_param("name", header="content-disposition"),
                filename=part.get_filename(),
                content=part.get_payload(decode=True) or b"",
                content_type=part.get_content_type(),
            )
        )
    return parts


def parts_by_name(parts: List[MultipartPart]) -> Dict[str, MultipartPart]:
    return {part.name: part for part in parts}
