"""Response decoding and error classification tests."""

from __future__ import annotations

import json
from typing import Any, Dict, List

from pydantic import BaseModel
from requests.structures import CaseInsensitiveDict

from gqlhttp import DecodeError, GraphQLError, HTTPStatusError, RawResponse, decode_response


def _raw(status: int, body: Any, headers: Dict[str, str] | None = None) -> RawResponse:
    content = body if isinstance(body, bytes) else json.dumps(body).encode("utf-8")
    return RawResponse(
        status_code=status,
        headers=CaseInsensitiveDict(headers or {"Content-Type": "application/json"}),
        content=content,
    )


class Item(BaseModel):
    id: int
    tags: List[str]


class Items(BaseModel):
    items: List[Item]


def test_success_returns_raw_data_by_default():
    result = decode_response(_raw(200, {"data": {"something": "yes"}}))

    assert result.ok
    assert result.error is None
    assert result.data == {"something": "yes"}
    assert result.status_code == 200
    assert result.headers["content-type"] == "application/json"


def test_success_decodes_into_model():
    payload = {"items": [{"id": 1, "tags": ["a"]}, {"id": 2, "tags": []}]}

    result = decode_response(_raw(200, {"data": payload}), into=Items)

    assert isinstance(result.data, Items)
    assert result.data.model_dump() == payload


def test_success_decodes_into_generic_mapping():
    result = decode_response(_raw(200, {"data": {"value": "some data"}}), into=Dict[str, str])

    assert result.data == {"value": "some data"}


def test_data_not_matching_shape_is_decode_error():
    result = decode_response(_raw(200, {"data": {"items": "nope"}}), into=Items)

    assert isinstance(result.error, DecodeError)
    assert result.data == {"items": "nope"}
    assert result.error.result is result


def test_errors_in_200_fail_with_first_message():
    body = {"errors": [{"message": "Something went wrong"}, {"message": "second"}]}

    result = decode_response(_raw(200, body))

    assert isinstance(result.error, GraphQLError)
    assert str(result.error) == "graphql: Something went wrong"
    assert result.headers["Content-Type"] == "application/json"
    assert [entry.message for entry in result.errors] == ["Something went wrong", "second"]


def test_partial_success_still_fails_but_keeps_data():
    body = {
        "data": {"viewer": {"login": "octocat"}, "repo": None},
        "errors": [{"message": "Could not resolve repo", "path": ["repo"], "extensions": {"code": "NOT_FOUND"}}],
    }

    result = decode_response(_raw(200, body))

    assert isinstance(result.error, GraphQLError)
    assert result.data == body["data"]
    assert result.errors[0].path == ["repo"]
    assert result.error.errors[0].extensions == {"code": "NOT_FOUND"}


def test_empty_errors_list_is_success():
    result = decode_response(_raw(200, {"data": {"a": 1}, "errors": []}))

    assert result.ok
    assert result.data == {"a": 1}


def test_non_json_200_is_decode_error():
    result = decode_response(_raw(200, b"<html>oops</html>"))

    assert isinstance(result.error, DecodeError)
    assert result.error.error_code == "DECODE_ERROR"
    assert result.status_code == 200


def test_non_object_json_is_decode_error():
    result = decode_response(_raw(200, [1, 2, 3]))

    assert isinstance(result.error, DecodeError)


def test_500_without_errors_reports_status():
    result = decode_response(_raw(500, b"Internal Server Error", {"Content-Type": "text/plain"}))

    assert isinstance(result.error, HTTPStatusError)
    assert str(result.error) == "graphql: server returned a non-200 status code: 500"
    assert result.error.status_code == 500
    assert result.status_code == 500
    assert result.headers["Content-Type"] == "text/plain"


def test_400_with_errors_prefers_server_message():
    body = {"errors": [{"message": "miscellaneous message as to why the the request was bad"}]}

    result = decode_response(_raw(400, body))

    assert isinstance(result.error, GraphQLError)
    assert str(result.error) == "graphql: miscellaneous message as to why the the request was bad"
    assert result.status_code == 400


def test_non_2xx_with_json_but_no_errors_reports_status():
    result = decode_response(_raw(502, {"data": None}))

    assert isinstance(result.error, HTTPStatusError)
    assert result.error.status_code == 502


def test_raise_for_error_raises_with_result_attached():
    result = decode_response(_raw(200, {"errors": [{"message": "boom"}]}))

    try:
        result.raise_for_error()
    except GraphQLError as exc:
        assert exc.result is result
        assert exc.server_message == "boom"
    else:
        raise AssertionError("GraphQLError not raised")
