"""Central dispatcher — routes parsed interactions to the driver and sweeper."""

from __future__ import annotations

from collections.abc import Callable, Coroutine
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import BaseModel, ConfigDict

from courier.core.events import ENGINE_STARTED, ENGINE_STOPPED, Event
from courier.core.interactions import (
    ASK_COMMAND,
    CLEAR_COMMAND,
    DirectMessageCommand,
    Ping,
)
from courier.exceptions import InteractionError

if TYPE_CHECKING:
    from courier.agents.base import BaseAgent
    from courier.connectors.base import BaseConnector
    from courier.core.conversation import ConversationDriver
    from courier.core.events import EventBus
    from courier.core.interactions import Command, Interaction
    from courier.core.sweeper import BulkDeletionSweeper

logger = structlog.get_logger()

# Interaction response types
PONG = 1
CHANNEL_MESSAGE = 4
DEFERRED_CHANNEL_MESSAGE = 5

MISSING_QUESTION_MESSAGE = "Please include a question."
DM_ONLY_MESSAGE = "This command can only be used in DMs."
CLEARING_MESSAGE = "Deleting my messages..."
CLEAR_FAILED_MESSAGE = "Error clearing messages."

FollowUp = Callable[[], Coroutine[Any, Any, Any]]


class InteractionReply(BaseModel):
    """Immediate webhook answer plus the work to run after it is sent."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    body: dict[str, Any]
    follow_up: FollowUp | None = None


def _message(content: str) -> dict[str, Any]:
    return {"type": CHANNEL_MESSAGE, "data": {"content": content}}


class Engine:
    def __init__(
        self,
        connector: BaseConnector,
        agent: BaseAgent,
        driver: ConversationDriver,
        sweeper: BulkDeletionSweeper,
        event_bus: EventBus,
    ) -> None:
        self.connector = connector
        self.agent = agent
        self.driver = driver
        self.sweeper = sweeper
        self.event_bus = event_bus

    async def startup(self) -> None:
        await self.connector.start()
        await self.event_bus.emit(Event(name=ENGINE_STARTED))
        logger.info("engine_started")

    async def shutdown(self) -> None:
        await self.event_bus.emit(Event(name=ENGINE_STOPPED))
        await self.connector.stop()
        await self.agent.shutdown()
        logger.info("engine_stopped")

    async def handle_interaction(self, interaction: Interaction) -> InteractionReply:
        if isinstance(interaction, Ping):
            return InteractionReply(body={"type": PONG})

        logger.info(
            "command_received",
            command=interaction.name,
            requester=interaction.user_id,
            channel_id=interaction.channel_id,
            kind=interaction.kind,
        )
        if interaction.name == ASK_COMMAND:
            return await self._handle_ask(interaction)
        if interaction.name == CLEAR_COMMAND:
            return self._handle_clear(interaction)
        raise InteractionError(f"unknown command: {interaction.name}")

    async def _handle_ask(self, command: Command) -> InteractionReply:
        if not command.content:
            return InteractionReply(body=_message(MISSING_QUESTION_MESSAGE))

        rejected = await self.driver.admit(command)
        if rejected is not None:
            return InteractionReply(body=_message(rejected.reply or ""))

        async def _converse() -> None:
            await self.driver.converse(command)

        return InteractionReply(
            body={"type": DEFERRED_CHANNEL_MESSAGE}, follow_up=_converse
        )

    def _handle_clear(self, command: Command) -> InteractionReply:
        if not isinstance(command, DirectMessageCommand):
            return InteractionReply(body=_message(DM_ONLY_MESSAGE))

        async def _sweep() -> None:
            await self.clear_own_messages(command)

        return InteractionReply(body=_message(CLEARING_MESSAGE), follow_up=_sweep)

    async def clear_own_messages(self, command: Command) -> int | None:
        """Sweep the bot's messages from the command's channel.

        Returns the deleted count, or None when the sweep aborted.
        """
        try:
            return await self.sweeper.sweep(
                command.channel_id, command.application_id
            )
        except Exception:
            logger.exception("clear_messages_failed", channel_id=command.channel_id)
        try:
            await self.connector.edit_original(
                command.application_id, command.token, CLEAR_FAILED_MESSAGE
            )
        except Exception:
            logger.warning("clear_failure_notice_undeliverable", exc_info=True)
        return None
