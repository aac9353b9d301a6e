"""Inbound interaction payloads, parsed once into concrete request variants."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

from courier.exceptions import InteractionError

# Discord interaction and channel type codes
INTERACTION_PING = 1
INTERACTION_APPLICATION_COMMAND = 2
CHANNEL_TYPE_DM = 1

ASK_COMMAND = "ask"
CLEAR_COMMAND = "cleardm"


class Ping(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["ping"] = "ping"


class _Command(BaseModel):
    model_config = ConfigDict(frozen=True)

    interaction_id: str
    application_id: str
    token: str
    channel_id: str
    user_id: str
    username: str
    name: str
    content: str | None = None


class DirectMessageCommand(_Command):
    kind: Literal["dm"] = "dm"


class ChannelCommand(_Command):
    kind: Literal["channel"] = "channel"
    guild_id: str | None = None


Command = DirectMessageCommand | ChannelCommand
Interaction = Ping | DirectMessageCommand | ChannelCommand


def _require(payload: dict[str, Any], key: str) -> Any:
    value = payload.get(key)
    if value in (None, ""):
        raise InteractionError(f"interaction payload missing '{key}'")
    return value


def _is_direct_message(payload: dict[str, Any]) -> bool:
    channel = payload.get("channel")
    if isinstance(channel, dict) and "type" in channel:
        return channel["type"] == CHANNEL_TYPE_DM
    # Older payloads omit the channel object; DMs never carry a guild.
    return "guild_id" not in payload


def _first_option_value(data: dict[str, Any]) -> str | None:
    options = data.get("options") or []
    if not options:
        return None
    value = options[0].get("value")
    return None if value is None else str(value)


def parse_interaction(payload: dict[str, Any]) -> Interaction:
    """Validate a raw webhook body into a Ping or a command variant.

    Raises InteractionError for unsupported types and missing fields.
    """
    if not isinstance(payload, dict):
        raise InteractionError("interaction payload must be an object")

    kind = payload.get("type")
    if kind == INTERACTION_PING:
        return Ping()
    if kind != INTERACTION_APPLICATION_COMMAND:
        raise InteractionError(f"unsupported interaction type: {kind!r}")

    data = payload.get("data") or {}
    is_dm = _is_direct_message(payload)
    if is_dm:
        user = payload.get("user") or {}
    else:
        user = (payload.get("member") or {}).get("user") or {}

    fields: dict[str, Any] = {
        "interaction_id": str(_require(payload, "id")),
        "application_id": str(_require(payload, "application_id")),
        "token": str(_require(payload, "token")),
        "channel_id": str(_require(payload, "channel_id")),
        "user_id": str(_require(user, "id")),
        "username": str(user.get("username") or user.get("id")),
        "name": str(_require(data, "name")),
        "content": _first_option_value(data),
    }
    if is_dm:
        return DirectMessageCommand(**fields)
    return ChannelCommand(guild_id=payload.get("guild_id"), **fields)
