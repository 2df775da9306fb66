"""Integration tests for the command endpoint.

Posts form-encoded commands through the full Starlette stack and checks the
JSON answers and error bodies.
"""

import dataclasses
import json
import logging

import pytest
from shared_types import CountWords, Echo, Forget, GetFib, MovePoint, Point
from starlette.testclient import TestClient

from starlette_pyjs.app import create_app
from starlette_pyjs.config import BridgeSettings
from starlette_pyjs.protocol import CommandCodec, Responder

ROUTE = "/client-command"


def fib(n: int) -> int:
    a, b = 0, 1
    for _ in range(n):
        a, b = b, a + b
    return a


class RecordingHandler:
    """Answers the sample commands and records every invocation."""

    def __init__(self) -> None:
        self.commands: list[object] = []

    async def __call__(self, respond: Responder, command: object):
        self.commands.append(command)
        match command:
            case Echo(contents=text, returns=r):
                return respond(r, text)
            case GetFib(n=n, returns=r):
                return respond(r, fib(n))
            case MovePoint(point=p, dx=dx, dy=dy, returns=r):
                return respond(r, Point(p.x + dx, p.y + dy))
            case CountWords(words=words, returns=r):
                return respond(r, len(words))
            case Forget():
                return None


@pytest.fixture
def handler() -> RecordingHandler:
    return RecordingHandler()


@pytest.fixture
def client(handler: RecordingHandler, codec: CommandCodec, settings: BridgeSettings) -> TestClient:
    app = create_app(handler, codec, settings=settings)
    return TestClient(app)


def post_command(client: TestClient, command: dict) -> object:
    return client.post(ROUTE, data={"json": json.dumps(command)})


# =============================================================================
# Tests: Successful commands
# =============================================================================


class TestCommandAnswers:
    """Test commands that produce answers."""

    def test_echo_scenario(self, client: TestClient):
        """Echo "hi" answers with the JSON encoding of "hi"."""
        response = client.post(ROUTE, data={"json": '{"tag":"Echo","contents":"hi"}'})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/json")
        assert response.content == b'"hi"'

    def test_get_fib(self, client: TestClient):
        response = post_command(client, {"tag": "GetFib", "n": 10, "returns": {"tag": "Returns"}})

        assert response.status_code == 200
        assert response.json() == 55

    def test_structured_answer(self, client: TestClient):
        response = post_command(
            client,
            {"tag": "MovePoint", "point": {"tag": "Point", "x": 1, "y": 1}, "dx": 2, "dy": 3},
        )

        assert response.json() == {"tag": "Point", "x": 3, "y": 4}

    def test_list_argument(self, client: TestClient):
        response = post_command(client, {"tag": "CountWords", "words": ["a", "b", "c"]})

        assert response.json() == 3

    def test_payload_in_query_string(self, client: TestClient):
        response = client.post(ROUTE, params={"json": '{"tag":"GetFib","n":5}'})

        assert response.status_code == 200
        assert response.json() == 5

    def test_unicode_round_trip(self, client: TestClient):
        response = post_command(client, {"tag": "Echo", "contents": "Привет 🌍"})

        assert response.json() == "Привет 🌍"

    def test_handler_invoked_once_per_request(self, client: TestClient, handler: RecordingHandler):
        post_command(client, {"tag": "Echo", "contents": "one"})
        post_command(client, {"tag": "Echo", "contents": "two"})

        assert handler.commands == [Echo(contents="one"), Echo(contents="two")]

    def test_sync_handler(self, codec: CommandCodec, settings: BridgeSettings):
        def handle(respond, command):
            return respond(command.returns, command.contents.upper())

        client = TestClient(create_app(handle, codec, settings=settings))
        response = post_command(client, {"tag": "Echo", "contents": "loud"})

        assert response.json() == "LOUD"

    def test_custom_command_route(self, handler: RecordingHandler, codec: CommandCodec, settings: BridgeSettings):
        custom = dataclasses.replace(settings, command_route="/api/command")
        client = TestClient(create_app(handler, codec, settings=custom))

        response = client.post("/api/command", data={"json": '{"tag":"GetFib","n":3}'})

        assert response.json() == 2


# =============================================================================
# Tests: Request failures
# =============================================================================


class TestRequestFailures:
    """Test errors that terminate the request."""

    def test_missing_payload(self, client: TestClient, handler: RecordingHandler):
        response = client.post(ROUTE, data={"other": "x"})

        assert response.status_code == 400
        assert response.json()["code"] == "MISSING_PAYLOAD"
        assert handler.commands == []

    def test_missing_payload_with_json_body(self, client: TestClient):
        """The command must arrive as a form field, not as the request body."""
        response = client.post(ROUTE, json={"tag": "Echo", "contents": "hi"})

        assert response.status_code == 400
        assert response.json()["code"] == "MISSING_PAYLOAD"

    def test_malformed_json(self, client: TestClient, handler: RecordingHandler):
        response = client.post(ROUTE, data={"json": "not valid json"})

        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "UNPARSEABLE_COMMAND"
        assert body["raw"] == "not valid json"
        assert handler.commands == []

    def test_unknown_command(self, client: TestClient):
        response = post_command(client, {"tag": "SelfDestruct"})

        assert response.status_code == 400
        assert response.json()["code"] == "UNPARSEABLE_COMMAND"
        assert "SelfDestruct" in response.json()["error"]

    def test_handler_without_answer(self, client: TestClient):
        response = post_command(client, {"tag": "Forget"})

        assert response.status_code == 500
        assert response.json()["code"] == "NO_RESPONSE"
        assert "Forget" in response.json()["error"]

    def test_handler_answering_twice(self, codec: CommandCodec, settings: BridgeSettings):
        async def handle(respond, command):
            respond(command.returns, "first")
            return respond(command.returns, "second")

        client = TestClient(create_app(handle, codec, settings=settings))
        response = post_command(client, {"tag": "Echo", "contents": "x"})

        assert response.status_code == 500
        assert response.json()["code"] == "RESPONDER_REUSED"

    def test_get_not_allowed(self, client: TestClient):
        response = client.get(ROUTE, params={"json": '{"tag":"GetFib","n":1}'})

        assert response.status_code == 405

    def test_inexact_payload_is_rejected_before_the_handler(self, client: TestClient, handler: RecordingHandler):
        response = post_command(client, {"tag": "GetFib", "n": "10"})

        assert response.status_code == 400
        assert response.json()["code"] == "UNPARSEABLE_COMMAND"
        assert handler.commands == []

    def test_extra_field_is_rejected(self, client: TestClient, handler: RecordingHandler):
        response = post_command(client, {"tag": "Echo", "contents": "hi", "admin": True})

        assert response.status_code == 400
        assert handler.commands == []


class TestHandlerFailures:
    """Test handlers that fail or answer with values JSON cannot carry."""

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), [float("-inf")]])
    def test_unencodable_result(self, codec: CommandCodec, settings: BridgeSettings, value: object):
        def handle(respond, command):
            return respond(command.returns, value)

        client = TestClient(create_app(handle, codec, settings=settings))
        response = post_command(client, {"tag": "Echo", "contents": "x"})

        assert response.status_code == 500
        assert response.headers["content-type"].startswith("application/json")
        assert response.json()["code"] == "UNENCODABLE_RESULT"

    def test_exception_before_answering(self, codec: CommandCodec, settings: BridgeSettings, caplog):
        async def handle(respond, command):
            raise RuntimeError("database is down")

        client = TestClient(create_app(handle, codec, settings=settings))
        with caplog.at_level(logging.ERROR, logger="starlette_pyjs"):
            response = post_command(client, {"tag": "Echo", "contents": "x"})

        assert response.status_code == 500
        body = response.json()
        assert body["code"] == "HANDLER_FAILURE"
        assert "Echo" in body["error"]
        assert "database is down" not in body["error"]
        assert any(record.exc_info and "database is down" in record.getMessage() for record in caplog.records)

    def test_exception_after_answering(self, codec: CommandCodec, settings: BridgeSettings):
        def handle(respond, command):
            respond(command.returns, "partial")
            raise KeyError("late")

        client = TestClient(create_app(handle, codec, settings=settings))
        response = post_command(client, {"tag": "Echo", "contents": "x"})

        assert response.status_code == 500
        assert response.json()["code"] == "HANDLER_FAILURE"


class TestHealthEndpoint:
    """Test the bridge status endpoint."""

    def test_health_returns_ok(self, client: TestClient):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_health_reports_bridge_state(self, client: TestClient):
        body = client.get("/health").json()

        assert body["strategy"] == "prebuilt"
        assert body["command_route"] == ROUTE
        assert body["asset_route"] == "/client-js"
        assert body["commands"] == ["Echo", "GetFib", "MovePoint", "CountWords", "Forget"]

    def test_health_reports_reload_strategy(self, handler: RecordingHandler, codec: CommandCodec, settings: BridgeSettings):
        settings.reload = True
        client = TestClient(create_app(handler, codec, settings=settings))

        assert client.get("/health").json()["strategy"] == "reload"
