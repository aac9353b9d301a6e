"""Webhook surface — FastAPI app receiving signed interaction callbacks."""

from __future__ import annotations

import json
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import structlog
from fastapi import BackgroundTasks, FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from courier.core.interactions import parse_interaction
from courier.exceptions import InteractionError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from courier.core.engine import Engine
    from courier.core.signature import SignatureVerifier

logger = structlog.get_logger()

SIGNATURE_HEADER = "x-signature-ed25519"
TIMESTAMP_HEADER = "x-signature-timestamp"


def create_app(engine: Engine, verifier: SignatureVerifier) -> FastAPI:
    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        await engine.startup()
        try:
            yield
        finally:
            await engine.shutdown()

    app = FastAPI(title="Courier", lifespan=lifespan)

    @app.get("/", response_class=PlainTextResponse)
    async def index() -> str:
        return "Courier is running"

    @app.post("/api/interactions")
    async def interactions(request: Request, background: BackgroundTasks) -> Response:
        signature = request.headers.get(SIGNATURE_HEADER)
        timestamp = request.headers.get(TIMESTAMP_HEADER)
        raw_body = await request.body()

        if not signature or not timestamp:
            logger.warning("interaction_signature_missing")
            return PlainTextResponse("Invalid request signature", status_code=401)
        if not verifier.verify(raw_body, signature, timestamp):
            logger.warning("interaction_signature_invalid")
            return PlainTextResponse("Invalid request signature", status_code=401)

        try:
            interaction = parse_interaction(json.loads(raw_body))
            reply = await engine.handle_interaction(interaction)
        except (json.JSONDecodeError, InteractionError) as e:
            logger.warning("interaction_rejected", error=str(e))
            return PlainTextResponse("Unknown interaction type", status_code=400)

        if reply.follow_up is not None:
            background.add_task(reply.follow_up)
        return JSONResponse(reply.body)

    return app
