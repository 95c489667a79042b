from __future__ import annotations

import json

import httpx

from codechrono.client import CollectorClient

from conftest import make_activity, make_revision

ENDPOINT = "https://collector.test/api/graphql"


def _client(handler, token: str | None = None) -> CollectorClient:
    return CollectorClient(ENDPOINT, token, transport=httpx.MockTransport(handler))


def _ack(field: str) -> dict:
    return {"data": {field: {"success": True, "message": "ok"}}}


def test_submit_activities_posts_graphql_mutation() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_ack("syncActivity"))

    client = _client(handler, token="secret")
    record = make_activity(1, id=7)

    assert client.submit_activities([record]) is True

    [request] = seen
    body = json.loads(request.content)
    assert request.headers["Authorization"] == "Bearer secret"
    assert "syncActivity" in body["query"]
    assert body["variables"]["input"] == [
        {
            "projectPath": "/work/app",
            "filePath": "/work/app/module_1.py",
            "language": "python",
            "timestamp": record.timestamp,
            "duration": 5_000,
            "editor": "vscode",
            "commitHash": "a1b2c3d4",
        }
    ]
    client.close()


def test_submit_revisions_payload_excludes_id() -> None:
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json=_ack("syncCommits"))

    client = _client(handler)

    assert client.submit_revisions([make_revision("b2", id=3)]) is True
    [payload] = bodies[0]["variables"]["input"]
    assert payload["commitHash"] == "b2"
    assert "id" not in payload
    client.close()


def test_server_error_is_reported_as_failure() -> None:
    client = _client(lambda request: httpx.Response(503, text="maintenance"))

    assert client.submit_activities([make_activity(1)]) is False
    client.close()


def test_network_error_is_reported_as_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("no route to host", request=request)

    client = _client(handler)

    assert client.submit_revisions([make_revision()]) is False
    client.close()


def test_graphql_errors_are_reported_as_failure() -> None:
    client = _client(
        lambda request: httpx.Response(200, json={"errors": [{"message": "unauthorized"}]})
    )

    assert client.submit_activities([make_activity(1)]) is False
    client.close()


def test_missing_acknowledgement_is_failure() -> None:
    client = _client(
        lambda request: httpx.Response(
            200, json={"data": {"syncActivity": {"success": False, "message": "nope"}}}
        )
    )

    assert client.submit_activities([make_activity(1)]) is False
    client.close()


def test_empty_batch_needs_no_request() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    client = _client(handler)

    assert client.submit_activities([]) is True
    assert client.submit_revisions([]) is True
    client.close()


def test_update_token_changes_authorization_header() -> None:
    headers: list[str | None] = []

    def handler(request: httpx.Request) -> httpx.Response:
        headers.append(request.headers.get("Authorization"))
        return httpx.Response(200, json=_ack("syncActivity"))

    client = _client(handler)
    client.submit_activities([make_activity(1)])
    client.update_token("fresh")
    client.submit_activities([make_activity(2)])

    assert headers == [None, "Bearer fresh"]
    client.close()
