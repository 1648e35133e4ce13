"""slackgate FastAPI application."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slack_sdk.signature import SignatureVerifier

from slackgate import __version__
from slackgate.api.events import router as events_router
from slackgate.slack.config import SlackConfig
from slackgate.slack.monitor import SlackEventHandler, SlackMonitorContext

logger = logging.getLogger("slackgate.api")


def create_app(
    config: SlackConfig,
    event_handler: Optional[SlackEventHandler] = None,
) -> FastAPI:
    """Build the HTTP app serving ``/slack/events``.

    Args:
        config: Slack monitor configuration. ``signing_secret`` verifies
            inbound requests; when empty, signatures are not checked
            (local development only).
        event_handler: Receives verified events and interactions. Defaults
            to a handler built from ``config``; register callbacks on
            ``app.state.event_handler``.
    """
    if event_handler is None:
        event_handler = SlackEventHandler(SlackMonitorContext.from_config(config))

    app = FastAPI(title="slackgate", version=__version__)
    app.state.slack_config = config
    app.state.event_handler = event_handler
    app.state.pending_tasks = set()
    if config.verifies_signatures:
        app.state.signature_verifier = SignatureVerifier(config.signing_secret)
    else:
        logger.warning("No Slack signing secret configured; /slack/events accepts unsigned requests")
        app.state.signature_verifier = None

    @app.get("/api/health")
    async def health_check() -> dict:
        return {"status": "ok", "version": __version__}

    app.include_router(events_router)

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    return app
