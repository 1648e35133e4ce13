"""Inbound payload identity filtering.

Slack delivers payloads for one app/workspace pair, but a shared endpoint
or a misrouted app installation can hand us payloads meant for
another. Two payload shapes carry the identity:

- Event envelopes (Events API): ``api_app_id`` and ``team_id`` at the top level.
- Interaction bodies (buttons, modals, shortcuts): ``api_app_id`` at the
  top level and the workspace under ``team.id``.

A payload is dropped only when an identifier it carries differs from the
expected one. Payloads without identifiers are kept.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class IdentityClaim:
    """Expected app/workspace pair, fixed for a monitor session."""

    app_id: Optional[str] = None
    team_id: Optional[str] = None


def _string_or_none(value: Any) -> Optional[str]:
    if isinstance(value, str) and value:
        return value
    return None


def extract_api_app_id(payload: Any) -> Optional[str]:
    """Read ``api_app_id`` from the top level of the payload."""
    if not isinstance(payload, Mapping):
        return None
    return _string_or_none(payload.get("api_app_id"))


def extract_team_id(payload: Any) -> Optional[str]:
    """Read ``team_id``, falling back to ``team.id`` for interaction bodies."""
    if not isinstance(payload, Mapping):
        return None
    team_id = _string_or_none(payload.get("team_id"))
    if team_id:
        return team_id
    team = payload.get("team")
    if isinstance(team, Mapping):
        return _string_or_none(team.get("id"))
    return None


def should_drop_mismatched_event(payload: Any, expected: IdentityClaim) -> bool:
    """Return True when the payload belongs to a different app or workspace."""
    app_id = extract_api_app_id(payload)
    if expected.app_id and app_id and app_id != expected.app_id:
        return True

    team_id = extract_team_id(payload)
    if expected.team_id and team_id and team_id != expected.team_id:
        return True

    return False
