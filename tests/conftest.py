"""Shared fixtures, mock connector and fake agent for testing."""

from __future__ import annotations

import os

import pytest
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from courier.agents.base import AgentResponse, Finish, TextDelta
from courier.connectors.base import BaseConnector, PlatformMessage
from courier.core.config import CourierConfig
from courier.core.conversation import ConversationDriver
from courier.core.cooldown import CooldownGuard
from courier.core.events import EventBus
from courier.core.interactions import ChannelCommand, DirectMessageCommand

SIGNING_KEY = Ed25519PrivateKey.generate()
PUBLIC_KEY_HEX = SIGNING_KEY.public_key().public_bytes_raw().hex()


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    """Keep the project .env file and COURIER_* shell vars out of tests."""
    monkeypatch.setitem(CourierConfig.model_config, "env_file", None)
    for key in list(os.environ):
        if key.startswith("COURIER_"):
            monkeypatch.delenv(key, raising=False)


class MockConnector(BaseConnector):
    """In-memory platform that records every delivery in call order."""

    def __init__(self) -> None:
        self.deliveries: list[dict] = []
        self.threads: list[dict] = []
        self.deleted: list[str] = []
        self.list_calls: list[dict] = []
        self.registered: list[dict] = []
        self.history: list[PlatformMessage] = []
        self.started = False
        self.fail_on: dict[str, Exception] = {}
        self.fail_delete_ids: set[str] = set()
        self._next_id = 1

    def _new_id(self) -> str:
        msg_id = str(self._next_id)
        self._next_id += 1
        return msg_id

    def _maybe_fail(self, operation: str) -> None:
        exc = self.fail_on.get(operation)
        if exc is not None:
            raise exc

    @property
    def texts(self) -> list[str]:
        return [d["text"] for d in self.deliveries]

    async def start(self) -> None:
        self.started = True

    async def stop(self) -> None:
        self.started = False

    async def edit_original(self, application_id: str, token: str, content: str) -> None:
        self._maybe_fail("edit_original")
        self.deliveries.append({"kind": "original", "token": token, "text": content})

    async def send_followup(self, application_id: str, token: str, content: str) -> str:
        self._maybe_fail("send_followup")
        msg_id = self._new_id()
        self.deliveries.append(
            {"kind": "followup", "token": token, "text": content, "id": msg_id}
        )
        return msg_id

    async def create_message(self, channel_id: str, content: str) -> str:
        self._maybe_fail("create_message")
        msg_id = self._new_id()
        self.deliveries.append(
            {"kind": "channel", "channel_id": channel_id, "text": content, "id": msg_id}
        )
        return msg_id

    async def edit_message(self, channel_id: str, message_id: str, content: str) -> None:
        self._maybe_fail("edit_message")
        self.deliveries.append(
            {
                "kind": "edit",
                "channel_id": channel_id,
                "message_id": message_id,
                "text": content,
            }
        )

    async def create_thread(
        self, channel_id: str, name: str, *, auto_archive_minutes: int = 60
    ) -> str:
        self._maybe_fail("create_thread")
        thread_id = f"thread-{self._new_id()}"
        self.threads.append(
            {
                "channel_id": channel_id,
                "name": name,
                "auto_archive_minutes": auto_archive_minutes,
                "thread_id": thread_id,
            }
        )
        return thread_id

    async def list_messages(
        self,
        channel_id: str,
        *,
        before: str | None = None,
        limit: int = 100,
    ) -> list[PlatformMessage]:
        self._maybe_fail("list_messages")
        self.list_calls.append({"channel_id": channel_id, "before": before, "limit": limit})
        # history is newest first; ids are unique strings
        start = 0
        if before is not None:
            ids = [m.id for m in self.history]
            start = ids.index(before) + 1
        return self.history[start : start + limit]

    async def delete_message(self, channel_id: str, message_id: str) -> None:
        if message_id in self.fail_delete_ids:
            raise RuntimeError(f"cannot delete {message_id}")
        self.deleted.append(message_id)

    async def register_commands(self, application_id: str, commands: list[dict]) -> None:
        self.registered.append({"application_id": application_id, "commands": commands})


class FakeAgent:
    """Agent returning a canned reply, or streaming canned events."""

    def __init__(
        self,
        reply: str = "Hello from the agent",
        *,
        events: list | None = None,
        fail: Exception | None = None,
    ) -> None:
        self.reply = reply
        self.events = events
        self.fail = fail
        self.prompts: list[str] = []
        self.shut_down = False

    async def generate(self, content: str) -> AgentResponse:
        self.prompts.append(content)
        if self.fail is not None:
            raise self.fail
        return AgentResponse(content=self.reply)

    async def stream(self, content: str):
        self.prompts.append(content)
        if self.fail is not None:
            raise self.fail
        events = self.events
        if events is None:
            events = [TextDelta(text=self.reply), Finish(reason="stop")]
        for event in events:
            yield event

    async def shutdown(self) -> None:
        self.shut_down = True


def make_dm_command(content: str | None = "What is Courier?", **overrides):
    fields = {
        "interaction_id": "int-1",
        "application_id": "app-1",
        "token": "tok-1",
        "channel_id": "dm-1",
        "user_id": "user-1",
        "username": "alice",
        "name": "ask",
        "content": content,
    }
    fields.update(overrides)
    return DirectMessageCommand(**fields)


def make_channel_command(content: str | None = "What is Courier?", **overrides):
    fields = {
        "interaction_id": "int-2",
        "application_id": "app-1",
        "token": "tok-2",
        "channel_id": "chan-1",
        "user_id": "user-2",
        "username": "bob",
        "name": "ask",
        "content": content,
        "guild_id": "guild-1",
    }
    fields.update(overrides)
    return ChannelCommand(**fields)


@pytest.fixture
def config():
    return CourierConfig(
        discord_bot_token="bot-token",
        discord_public_key=PUBLIC_KEY_HEX,
        agent_url="http://agent.test",
    )


@pytest.fixture
def mock_connector():
    return MockConnector()


@pytest.fixture
def fake_agent():
    return FakeAgent()


@pytest.fixture
def guard():
    return CooldownGuard(10.0)


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def driver(mock_connector, fake_agent, guard, config, event_bus):
    return ConversationDriver(mock_connector, fake_agent, guard, config, event_bus)
