"""
Tests for the public websocket and the local control surface.
"""

import pytest
from fastapi.testclient import TestClient

from incognitomail.core.exceptions import (
    AccountNotFoundException,
    InvalidPermissionException,
    UnknownCommandException,
)
from incognitomail.api.control import create_control_app
from incognitomail.api.public import create_public_app
from incognitomail.services.command_actor import RPC_SOURCE, WEBSOCKET_SOURCE


class StubFacade:
    """Answers commands from a fixed table."""

    def __init__(self, replies=None):
        self.replies = replies or {}
        self.received = []

    async def submit(self, source, text):
        self.received.append((source, text))
        reply = self.replies.get(text, "ok")
        if isinstance(reply, Exception):
            raise reply
        return reply


class StubHandleService:
    def __init__(self, handles=None):
        self.handles = handles or {}

    async def list_handles(self, secret):
        if secret not in self.handles:
            raise AccountNotFoundException()
        return self.handles[secret]


# ===================================
# Public websocket
# ===================================

@pytest.fixture
def facade():
    return StubFacade({
        "new handle s3cret": "abc@example.com",
        "new account me@real.org": InvalidPermissionException(WEBSOCKET_SOURCE),
        "bogus": UnknownCommandException("bogus"),
        "explode": RuntimeError("disk on fire"),
    })


@pytest.fixture
def public_client(settings, facade):
    return TestClient(create_public_app(settings, facade))


def test_websocket_returns_result(public_client, facade):
    with public_client.websocket_connect("/incognitomail") as ws:
        ws.send_text("new handle s3cret")
        assert ws.receive_text() == "abc@example.com"

    assert facade.received == [(WEBSOCKET_SOURCE, "new handle s3cret")]


def test_websocket_accepts_binary_frames(public_client):
    with public_client.websocket_connect("/incognitomail") as ws:
        ws.send_bytes(b"new handle s3cret")
        assert ws.receive_text() == "abc@example.com"


@pytest.mark.parametrize(
    "command,reply",
    [
        ("new account me@real.org", "error invalid permission to do this"),
        ("bogus", "error unknown command received"),
    ],
)
def test_websocket_reports_errors(public_client, command, reply):
    with public_client.websocket_connect("/incognitomail") as ws:
        ws.send_text(command)
        assert ws.receive_text() == reply


def test_websocket_hides_internal_errors(public_client):
    with public_client.websocket_connect("/incognitomail") as ws:
        ws.send_text("explode")
        assert ws.receive_text() == "error internal error"


def test_websocket_shows_internal_errors_in_development(settings, facade):
    settings.APP_ENV = "development"
    client = TestClient(create_public_app(settings, facade))

    with client.websocket_connect("/incognitomail") as ws:
        ws.send_text("explode")
        assert ws.receive_text() == "error disk on fire"


def test_websocket_invalid_utf8(public_client, facade):
    with public_client.websocket_connect("/incognitomail") as ws:
        ws.send_bytes(b"\xff\xfe")
        assert ws.receive_text() == "error receiving command"

    assert facade.received == []


def test_metrics_endpoint(public_client):
    response = public_client.get("/metrics/")

    assert response.status_code == 200
    assert "incognitomail_commands_total" in response.text


def test_metrics_can_be_disabled(settings, facade):
    settings.ENABLE_METRICS = False
    client = TestClient(create_public_app(settings, facade))

    assert client.get("/metrics/").status_code == 404


# ===================================
# Control surface
# ===================================

@pytest.fixture
def stop_calls():
    return []


@pytest.fixture
def control_client(stop_calls):
    app = create_control_app(
        StubFacade({
            "new account me@real.org": "s3cret",
            "bogus": UnknownCommandException("bogus"),
            "explode": RuntimeError("disk on fire"),
        }),
        StubHandleService({"s3cret": ["abc", "def"]}),
        on_stop=lambda: stop_calls.append(True),
    )
    return TestClient(app, raise_server_exceptions=False)


def test_send_command(control_client):
    response = control_client.post("/rpc/SendCommand", json={"args": "new account me@real.org"})

    assert response.status_code == 200
    assert response.json() == {"result": "s3cret"}


def test_send_command_uses_trusted_source():
    facade = StubFacade()
    client = TestClient(create_control_app(facade, StubHandleService(), on_stop=lambda: None))

    client.post("/rpc/SendCommand", json={"args": "delete account s3cret"})

    assert facade.received == [(RPC_SOURCE, "delete account s3cret")]


def test_send_command_error(control_client):
    response = control_client.post("/rpc/SendCommand", json={"args": "bogus"})

    assert response.status_code == 400
    assert response.json() == {
        "error": "unknown command received",
        "code": "unknown_command",
        "detail": None,
    }


@pytest.mark.parametrize("args", [None, 42, ["new", "account"]])
def test_send_command_requires_text(control_client, args):
    response = control_client.post("/rpc/SendCommand", json={"args": args})

    assert response.status_code == 400
    assert response.json()["error"] == "wrong command usage"


def test_unexpected_error(control_client):
    response = control_client.post("/rpc/SendCommand", json={"args": "explode"})

    assert response.status_code == 500
    assert response.json()["code"] == "internal_error"


def test_list_handles(control_client):
    response = control_client.post("/rpc/ListHandles", json={"args": "s3cret"})

    assert response.status_code == 200
    assert response.json() == {"result": ["abc", "def"]}


def test_list_handles_unknown_account(control_client):
    response = control_client.post("/rpc/ListHandles", json={"args": "nosuchsecret"})

    assert response.status_code == 404
    assert response.json()["error"] == "account not found"


def test_stop_runs_after_reply(control_client, stop_calls):
    response = control_client.post("/rpc/Stop", json={"args": None})

    assert response.status_code == 200
    assert response.json() == {"result": None}
    assert stop_calls == [True]
