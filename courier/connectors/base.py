"""Abstract platform connector protocol."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, ConfigDict


class PlatformMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    author_id: str
    content: str = ""


class ReplyTarget(BaseModel):
    """Where one conversation's frames go.

    ``thread_id`` set means every frame is appended to that sub-thread;
    otherwise frames go to the interaction's original deferred reply.
    """

    model_config = ConfigDict(frozen=True)

    application_id: str
    token: str
    thread_id: str | None = None

    @property
    def is_thread(self) -> bool:
        return self.thread_id is not None


class BaseConnector(ABC):
    @abstractmethod
    async def start(self) -> None: ...

    @abstractmethod
    async def stop(self) -> None: ...

    @abstractmethod
    async def edit_original(
        self, application_id: str, token: str, content: str
    ) -> None:
        """Replace the content of the interaction's original (deferred) reply."""

    @abstractmethod
    async def send_followup(self, application_id: str, token: str, content: str) -> str:
        """Post an additional message on the interaction. Returns its ID."""

    @abstractmethod
    async def create_message(self, channel_id: str, content: str) -> str: ...

    @abstractmethod
    async def edit_message(
        self, channel_id: str, message_id: str, content: str
    ) -> None: ...

    @abstractmethod
    async def create_thread(
        self, channel_id: str, name: str, *, auto_archive_minutes: int = 60
    ) -> str:
        """Open a public thread under *channel_id*. Returns the thread ID."""

    @abstractmethod
    async def list_messages(
        self,
        channel_id: str,
        *,
        before: str | None = None,
        limit: int = 100,
    ) -> list[PlatformMessage]:
        """Return one page of history, newest first."""

    @abstractmethod
    async def delete_message(self, channel_id: str, message_id: str) -> None: ...

    async def register_commands(  # noqa: B027
        self, application_id: str, commands: list[dict[str, Any]]
    ) -> None:
        """Overwrite the application's global commands. Default: no-op."""
