"""Slack Events API and interactivity endpoint.

Event envelopes arrive as JSON; interaction bodies arrive form-encoded with
the JSON in a ``payload`` field. Both are verified with the signing secret
(when configured) and handed to the app's SlackEventHandler.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable
from urllib.parse import parse_qs

from fastapi import APIRouter, FastAPI, HTTPException, Request

logger = logging.getLogger("slackgate.api")

router = APIRouter(tags=["slack"])


def _parse_body(raw: bytes, content_type: str) -> tuple[dict, bool]:
    """Return the payload and whether it is an interaction body."""
    if "application/x-www-form-urlencoded" in content_type:
        form = parse_qs(raw.decode("utf-8"))
        payload = json.loads(form["payload"][0])
        is_interaction = True
    else:
        payload = json.loads(raw)
        is_interaction = False
    if not isinstance(payload, dict):
        raise ValueError("payload must be a JSON object")
    return payload, is_interaction


def _schedule(
    app: FastAPI,
    handle: Callable[[dict], Awaitable[Any]],
    payload: dict,
) -> asyncio.Task:
    """Run a handler coroutine after the response, keeping a reference until done."""
    task = asyncio.create_task(handle(payload))
    pending: set = app.state.pending_tasks
    pending.add(task)

    def _done(t: asyncio.Task) -> None:
        pending.discard(t)
        if not t.cancelled() and t.exception() is not None:
            logger.error("Slack handler failed", exc_info=t.exception())

    task.add_done_callback(_done)
    return task


@router.post("/slack/events")
async def slack_events(request: Request) -> dict:
    """Handle incoming Slack events and interactions.

    Handles:
    - URL verification challenges from Slack
    - Event callbacks (messages, app mentions)
    - Interactive component payloads
    """
    raw = await request.body()

    verifier = request.app.state.signature_verifier
    if verifier is not None and not verifier.is_valid_request(raw, dict(request.headers)):
        logger.warning("Rejected Slack request with invalid signature")
        raise HTTPException(status_code=401, detail="Invalid Slack signature")

    try:
        payload, is_interaction = _parse_body(raw, request.headers.get("content-type", ""))
    except (KeyError, IndexError, UnicodeDecodeError, ValueError):
        raise HTTPException(status_code=400, detail="Malformed Slack payload")

    if payload.get("type") == "url_verification":
        return {"challenge": payload.get("challenge")}

    # Slack retries deliveries not acknowledged within 3 seconds
    handler = request.app.state.event_handler
    if is_interaction:
        _schedule(request.app, handler.handle_interaction, payload)
    else:
        _schedule(request.app, handler.handle_event, payload)

    return {"ok": True}
