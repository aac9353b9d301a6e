"""Bootstrap: wires all components together."""

from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from courier.agents.remote import RemoteAgent
from courier.connectors.discord import DiscordConnector
from courier.core.config import CourierConfig
from courier.core.conversation import ConversationDriver
from courier.core.cooldown import CooldownGuard
from courier.core.engine import Engine
from courier.core.events import Event, EventBus
from courier.core.retry import RetryPolicy, RetryTransport
from courier.core.signature import Ed25519Verifier
from courier.core.sweeper import BulkDeletionSweeper
from courier.server import create_app

if TYPE_CHECKING:
    from fastapi import FastAPI

    from courier.agents.base import BaseAgent
    from courier.connectors.base import BaseConnector

logger = structlog.get_logger()


_NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


def _rendered(
    handler: logging.Handler, renderer: structlog.types.Processor
) -> logging.Handler:
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(processor=renderer))
    return handler


def _configure_logging(config: CourierConfig, *, log_dir: Path | None = None) -> None:
    """Route structlog through stdlib logging.

    The console gets colored output, or JSON lines when ``log_json`` is set.
    With *log_dir*, a rotating ``courier.log`` always receives JSON lines.
    """
    handlers: list[logging.Handler] = [
        _rendered(
            logging.StreamHandler(),
            structlog.processors.JSONRenderer()
            if config.log_json
            else structlog.dev.ConsoleRenderer(),
        )
    ]
    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        rotating = logging.handlers.RotatingFileHandler(
            log_dir / "courier.log",
            maxBytes=config.log_max_bytes,
            backupCount=config.log_backup_count,
        )
        handlers.append(_rendered(rotating, structlog.processors.JSONRenderer()))

    root_logger = logging.getLogger()
    root_logger.handlers = handlers
    root_logger.setLevel(config.log_level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


async def _log_event(event: Event) -> None:
    logger.debug("lifecycle_event", event_name=event.name, **event.data)


def build_retry(config: CourierConfig) -> RetryTransport:
    return RetryTransport(
        RetryPolicy(
            timeout=config.request_timeout_seconds,
            max_retries=config.max_retries,
            base_delay=config.backoff_base_seconds,
            factor=config.backoff_factor,
            max_delay=config.backoff_max_seconds,
        )
    )


def build_connector(
    config: CourierConfig, retry: RetryTransport | None = None
) -> DiscordConnector:
    return DiscordConnector(
        config.discord_bot_token,
        retry or build_retry(config),
        api_base=config.discord_api_base,
    )


def build_engine(
    config: CourierConfig | None = None,
    connector: BaseConnector | None = None,
    agent: BaseAgent | None = None,
) -> Engine:
    if config is None:
        config = CourierConfig()  # type: ignore[call-arg]  # pydantic-settings loads from env

    _configure_logging(config, log_dir=config.log_dir)

    retry = build_retry(config)
    if connector is None:
        connector = build_connector(config, retry)
    if agent is None:
        agent = RemoteAgent(
            config.agent_url,
            config.agent_id,
            retry,
            max_steps=config.agent_max_steps,
        )

    event_bus = EventBus()
    event_bus.subscribe_all(_log_event)
    guard = CooldownGuard(config.cooldown_seconds)
    driver = ConversationDriver(connector, agent, guard, config, event_bus)
    sweeper = BulkDeletionSweeper(
        connector,
        page_size=config.sweep_page_size,
        delay_seconds=config.sweep_delay_seconds,
        event_bus=event_bus,
    )

    logger.info(
        "engine_built",
        agent_id=config.agent_id,
        streaming=config.streaming_enabled,
        cooldown_seconds=config.cooldown_seconds,
        max_retries=config.max_retries,
        frame_size=config.frame_size,
    )

    return Engine(
        connector=connector,
        agent=agent,
        driver=driver,
        sweeper=sweeper,
        event_bus=event_bus,
    )


def build_app(config: CourierConfig | None = None) -> FastAPI:
    if config is None:
        config = CourierConfig()  # type: ignore[call-arg]  # pydantic-settings loads from env
    engine = build_engine(config)
    return create_app(engine, Ed25519Verifier(config.discord_public_key))
