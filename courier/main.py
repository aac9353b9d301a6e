"""CLI entry points for Courier."""

import asyncio
import sys

import structlog
import uvicorn

from courier.app import build_app, build_connector
from courier.commands import COMMANDS
from courier.core.config import CourierConfig
from courier.exceptions import NetworkError

logger = structlog.get_logger()


def _load_config() -> CourierConfig:
    try:
        return CourierConfig()  # type: ignore[call-arg]  # pydantic-settings loads from env
    except Exception as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        print(
            "Set COURIER_DISCORD_BOT_TOKEN, COURIER_DISCORD_PUBLIC_KEY and "
            "COURIER_AGENT_URL or create a .env file.",
            file=sys.stderr,
        )
        sys.exit(1)


def run() -> None:
    config = _load_config()
    app = build_app(config)
    logger.info("server_starting", host=config.host, port=config.port)
    uvicorn.run(app, host=config.host, port=config.port, log_config=None)


async def _register(config: CourierConfig) -> None:
    if not config.discord_application_id:
        print(
            "Set COURIER_DISCORD_APPLICATION_ID to register commands.",
            file=sys.stderr,
        )
        sys.exit(1)

    connector = build_connector(config)
    await connector.start()
    try:
        await connector.register_commands(config.discord_application_id, COMMANDS)
    except NetworkError as e:
        print(f"Command registration failed: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        await connector.stop()
    print(f"Registered {len(COMMANDS)} commands.")


def register() -> None:
    asyncio.run(_register(_load_config()))
