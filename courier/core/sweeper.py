"""Bulk deletion sweeper — removes the bot's own messages from a channel."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from courier.core.events import SWEEP_COMPLETED, Event, EventBus
from courier.exceptions import PartialDeletionError

if TYPE_CHECKING:
    from courier.connectors.base import BaseConnector

logger = structlog.get_logger()


class BulkDeletionSweeper:
    def __init__(
        self,
        connector: BaseConnector,
        *,
        page_size: int = 100,
        delay_seconds: float = 1.0,
        event_bus: EventBus | None = None,
    ) -> None:
        self.connector = connector
        self._page_size = page_size
        self._delay = delay_seconds
        self.event_bus = event_bus or EventBus()

    async def sweep(self, channel_id: str, actor_id: str) -> int:
        """Delete every message by *actor_id*, newest page first.

        Single-message failures are logged and skipped. A failed page fetch
        propagates, since the walk cannot continue without a cursor.
        """
        deleted = 0
        failed = 0
        pages = 0
        cursor: str | None = None
        logger.info("sweep_started", channel_id=channel_id)

        while True:
            page = await self.connector.list_messages(
                channel_id, before=cursor, limit=self._page_size
            )
            if not page:
                break
            pages += 1

            for message in page:
                if message.author_id != actor_id:
                    continue
                try:
                    await self.connector.delete_message(channel_id, message.id)
                    deleted += 1
                except Exception as exc:
                    failed += 1
                    logger.warning(
                        "sweep_delete_failed",
                        channel_id=channel_id,
                        error=str(PartialDeletionError(message.id, exc)),
                    )
                # Platform rate limit: one delete per delay window.
                await asyncio.sleep(self._delay)

            cursor = page[-1].id

        logger.info(
            "sweep_completed",
            channel_id=channel_id,
            deleted=deleted,
            failed=failed,
            pages=pages,
        )
        await self.event_bus.emit(
            Event(
                name=SWEEP_COMPLETED,
                data={"channel_id": channel_id, "deleted": deleted, "failed": failed},
            )
        )
        return deleted
