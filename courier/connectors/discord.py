"""Discord connector — typed REST operations over httpx."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from courier.connectors.base import BaseConnector, PlatformMessage
from courier.core.retry import RetryTransport
from courier.exceptions import ConnectorError, HTTPResponseError

logger = structlog.get_logger()

_PUBLIC_THREAD = 11
_THREAD_NAME_MAX = 100
_USER_AGENT = "DiscordBot (courier, 0.1.0)"


class DiscordConnector(BaseConnector):
    def __init__(
        self,
        bot_token: str,
        retry: RetryTransport,
        *,
        api_base: str = "https://discord.com/api/v10",
        http_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._token = bot_token
        self._retry = retry
        self._api_base = api_base.rstrip("/")
        self._http_transport = http_transport
        self._client: httpx.AsyncClient | None = None

    async def start(self) -> None:
        if self._client is not None:
            return
        self._client = httpx.AsyncClient(
            base_url=self._api_base,
            headers={"User-Agent": _USER_AGENT},
            timeout=self._retry.policy.timeout,
            transport=self._http_transport,
        )
        logger.info("discord_connector_started", api_base=self._api_base)

    async def stop(self) -> None:
        if self._client is None:
            return
        await self._client.aclose()
        self._client = None
        logger.info("discord_connector_stopped")

    async def _request(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        json: Any = None,
        params: dict[str, Any] | None = None,
        authorized: bool = True,
    ) -> Any:
        if self._client is None:
            raise ConnectorError("Discord connector is not started")
        client = self._client
        headers = {"Authorization": f"Bot {self._token}"} if authorized else None

        async def _call() -> Any:
            response = await client.request(
                method, path, json=json, params=params, headers=headers
            )
            if not response.is_success:
                raise HTTPResponseError(response.status_code, response.reason_phrase)
            if response.status_code == httpx.codes.NO_CONTENT or not response.content:
                return None
            return response.json()

        return await self._retry.execute(_call, operation=operation)

    async def edit_original(
        self, application_id: str, token: str, content: str
    ) -> None:
        await self._request(
            "PATCH",
            f"/webhooks/{application_id}/{token}/messages/@original",
            operation="edit_original",
            json={"content": content},
            authorized=False,
        )

    async def send_followup(self, application_id: str, token: str, content: str) -> str:
        data = await self._request(
            "POST",
            f"/webhooks/{application_id}/{token}",
            operation="send_followup",
            json={"content": content},
            params={"wait": "true"},
            authorized=False,
        )
        return str((data or {}).get("id", ""))

    async def create_message(self, channel_id: str, content: str) -> str:
        data = await self._request(
            "POST",
            f"/channels/{channel_id}/messages",
            operation="create_message",
            json={"content": content},
        )
        return str(data["id"])

    async def edit_message(
        self, channel_id: str, message_id: str, content: str
    ) -> None:
        await self._request(
            "PATCH",
            f"/channels/{channel_id}/messages/{message_id}",
            operation="edit_message",
            json={"content": content},
        )

    async def create_thread(
        self, channel_id: str, name: str, *, auto_archive_minutes: int = 60
    ) -> str:
        data = await self._request(
            "POST",
            f"/channels/{channel_id}/threads",
            operation="create_thread",
            json={
                "name": name[:_THREAD_NAME_MAX],
                "auto_archive_duration": auto_archive_minutes,
                "type": _PUBLIC_THREAD,
            },
        )
        thread_id = str(data["id"])
        logger.info(
            "discord_thread_created", channel_id=channel_id, thread_id=thread_id
        )
        return thread_id

    async def list_messages(
        self,
        channel_id: str,
        *,
        before: str | None = None,
        limit: int = 100,
    ) -> list[PlatformMessage]:
        params: dict[str, Any] = {"limit": limit}
        if before:
            params["before"] = before
        data = await self._request(
            "GET",
            f"/channels/{channel_id}/messages",
            operation="list_messages",
            params=params,
        )
        return [
            PlatformMessage(
                id=str(item["id"]),
                author_id=str((item.get("author") or {}).get("id", "")),
                content=item.get("content") or "",
            )
            for item in data or []
        ]

    async def delete_message(self, channel_id: str, message_id: str) -> None:
        await self._request(
            "DELETE",
            f"/channels/{channel_id}/messages/{message_id}",
            operation="delete_message",
        )

    async def register_commands(
        self, application_id: str, commands: list[dict[str, Any]]
    ) -> None:
        await self._request(
            "PUT",
            f"/applications/{application_id}/commands",
            operation="register_commands",
            json=commands,
        )
        logger.info(
            "discord_commands_registered",
            application_id=application_id,
            command_count=len(commands),
        )
