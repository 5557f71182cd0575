import json

import pytest
import requests

from services.remote_apply import HttpRemoteApplier, build_request
from services.sync_engine import ApplyResult


def _response(status_code, body=None):
    response = requests.Response()
    response.status_code = status_code
    response._content = json.dumps(body).encode("utf-8") if body is not None else b""
    return response


class FakeSession:
    def __init__(self, response=None, error=None):
        self.headers = {}
        self.response = response
        self.error = error
        self.calls = []

    def request(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.response


@pytest.mark.parametrize(
    "table, record_id, operation, payload, expected",
    [
        ("messages", "7", "create", {"group_id": 3}, ("POST", "/api/groups/3/messages")),
        ("messages", "7", "update", {"groupId": 3}, ("PUT", "/api/groups/3/messages/7")),
        ("messages", "7", "delete", {"group_id": 3}, ("DELETE", "/api/groups/3/messages/7")),
        ("groups", "g-1", "create", {"name": "Maize"}, ("POST", "/api/groups")),
        ("groups", "g-1", "update", {"name": "Maize"}, ("PUT", "/api/groups/g-1")),
    ],
)
def test_build_request_routes(table, record_id, operation, payload, expected):
    assert build_request(table, record_id, operation, payload) == expected


def test_build_request_needs_group_for_messages():
    with pytest.raises(ValueError):
        build_request("messages", "7", "create", {"content": "hi"})


def test_apply_sends_json_and_bearer_token():
    session = FakeSession(_response(201, {"id": 7}))
    applier = HttpRemoteApplier(
        "http://api.test/", token_provider=lambda: "secret", timeout=3, session=session
    )

    result = applier.apply("messages", "7", "create", {"group_id": 3, "content": "hi"})

    assert result == ApplyResult(True)
    call = session.calls[0]
    assert call["method"] == "POST"
    assert call["url"] == "http://api.test/api/groups/3/messages"
    assert call["json"] == {"group_id": 3, "content": "hi"}
    assert call["headers"] == {"Authorization": "Bearer secret"}
    assert call["timeout"] == 3


def test_delete_sends_no_body_and_tolerates_missing_record():
    session = FakeSession(_response(404))
    applier = HttpRemoteApplier("http://api.test", session=session)

    result = applier.apply("groups", "g-1", "delete", {"name": "Maize"})

    assert result.success is True
    assert session.calls[0]["json"] is None
    assert session.calls[0]["headers"] == {}


def test_server_rejection_carries_message():
    session = FakeSession(_response(422, {"message": "content is required"}))
    applier = HttpRemoteApplier("http://api.test", session=session)

    result = applier.apply("groups", "g-1", "update", {})

    assert result == ApplyResult(False, "HTTP 422: content is required")


def test_transport_error_is_reported_not_raised():
    session = FakeSession(error=requests.exceptions.ConnectionError("refused"))
    applier = HttpRemoteApplier("http://api.test", session=session)

    result = applier.apply("groups", "g-1", "update", {"name": "x"})

    assert result.success is False
    assert "refused" in result.error


def test_unroutable_item_is_reported_without_request():
    session = FakeSession(_response(200))
    applier = HttpRemoteApplier("http://api.test", session=session)

    result = applier.apply("messages", "7", "create", {})

    assert result.success is False
    assert session.calls == []


@pytest.mark.asyncio
async def test_applier_is_awaitable():
    session = FakeSession(_response(200, {}))
    applier = HttpRemoteApplier("http://api.test", session=session)

    result = await applier("groups", "g-1", "update", {"name": "x"})

    assert result.success is True
