"""Tests for the webhook surface."""

import json
import time

import pytest
from conftest import PUBLIC_KEY_HEX, SIGNING_KEY, FakeAgent, MockConnector
from fastapi.testclient import TestClient

from courier.core.conversation import ConversationDriver
from courier.core.cooldown import CooldownGuard
from courier.core.engine import Engine
from courier.core.events import EventBus
from courier.core.signature import Ed25519Verifier
from courier.core.sweeper import BulkDeletionSweeper
from courier.server import create_app


@pytest.fixture
def connector():
    return MockConnector()


@pytest.fixture
def agent():
    return FakeAgent("The answer")


@pytest.fixture
def client(connector, agent, config):
    bus = EventBus()
    engine = Engine(
        connector=connector,
        agent=agent,
        driver=ConversationDriver(connector, agent, CooldownGuard(), config, bus),
        sweeper=BulkDeletionSweeper(connector, event_bus=bus),
        event_bus=bus,
    )
    app = create_app(engine, Ed25519Verifier(PUBLIC_KEY_HEX))
    with TestClient(app) as test_client:
        yield test_client


def _signed_post(client, payload, *, timestamp=None, body=None):
    timestamp = timestamp or str(int(time.time()))
    raw = body if body is not None else json.dumps(payload).encode()
    signature = SIGNING_KEY.sign(timestamp.encode() + raw).hex()
    return client.post(
        "/api/interactions",
        content=raw,
        headers={
            "x-signature-ed25519": signature,
            "x-signature-timestamp": timestamp,
            "content-type": "application/json",
        },
    )


def _ask_payload(question="What is Courier?"):
    return {
        "id": "int-1",
        "application_id": "app-1",
        "type": 2,
        "token": "tok-1",
        "channel_id": "dm-1",
        "channel": {"id": "dm-1", "type": 1},
        "user": {"id": "user-1", "username": "alice"},
        "data": {
            "name": "ask",
            "options": [{"name": "question", "type": 3, "value": question}],
        },
    }


class TestIndex:
    def test_health(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.text == "Courier is running"


class TestSignature:
    def test_missing_headers(self, client):
        response = client.post("/api/interactions", json={"type": 1})
        assert response.status_code == 401
        assert response.text == "Invalid request signature"

    def test_bad_signature(self, client):
        response = client.post(
            "/api/interactions",
            json={"type": 1},
            headers={
                "x-signature-ed25519": "00" * 64,
                "x-signature-timestamp": "1700000000",
            },
        )
        assert response.status_code == 401

    def test_lifecycle_starts_connector(self, client, connector):
        assert connector.started is True


class TestInteractions:
    def test_ping(self, client):
        response = _signed_post(client, {"type": 1})
        assert response.status_code == 200
        assert response.json() == {"type": 1}

    def test_ask_defers_and_replies(self, client, connector, agent):
        response = _signed_post(client, _ask_payload())

        assert response.status_code == 200
        assert response.json() == {"type": 5}
        assert agent.prompts == ["What is Courier?"]
        assert connector.texts == ["> What is Courier?", "The answer"]

    def test_too_long_answered_inline(self, client, agent):
        response = _signed_post(client, _ask_payload("a" * 2001))

        assert response.json()["type"] == 4
        assert "too long" in response.json()["data"]["content"]
        assert agent.prompts == []

    def test_unknown_interaction_type(self, client):
        response = _signed_post(client, {"type": 3})
        assert response.status_code == 400
        assert response.text == "Unknown interaction type"

    def test_invalid_json(self, client):
        response = _signed_post(client, None, body=b"{not json")
        assert response.status_code == 400
