"""Slack file download and local storage.

Private Slack files are fetched with the bot token as a bearer header.
Redirects are followed by hand so the Authorization header survives the
hop to the file host; aiohttp drops it on cross-origin redirects. Slack
answers unauthenticated requests with its HTML login page and status 200,
so HTML bodies are rejected unless the file itself is HTML.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
import uuid
from dataclasses import dataclass
from typing import Optional, Sequence

import aiohttp
from yarl import URL

logger = logging.getLogger(__name__)

MAX_REDIRECTS = 5
CHUNK_SIZE = 64 * 1024

_UNSAFE_FILENAME = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass(frozen=True)
class SlackMediaFile:
    """File fields needed to download a Slack attachment."""

    id: Optional[str] = None
    name: Optional[str] = None
    mimetype: Optional[str] = None
    url_private: Optional[str] = None
    url_private_download: Optional[str] = None

    @property
    def download_url(self) -> Optional[str]:
        return self.url_private_download or self.url_private


@dataclass(frozen=True)
class SlackMediaResult:
    """A downloaded file saved on local disk."""

    path: str
    content_type: Optional[str]
    placeholder: str


class MediaTooLarge(Exception):
    """The remote file exceeds the caller's byte cap."""


def media_placeholder(file: SlackMediaFile) -> str:
    return f"[Slack file: {file.name or file.id or 'file'}]"


def _safe_filename(file: SlackMediaFile) -> str:
    base = _UNSAFE_FILENAME.sub("_", file.name or file.id or "file").strip("._")
    return f"{uuid.uuid4().hex[:12]}-{base or 'file'}"


def _looks_like_login_page(content_type: str, file: SlackMediaFile) -> bool:
    if "text/html" not in content_type.lower():
        return False
    return not (file.mimetype or "").lower().startswith("text/html")


async def _fetch(
    session: aiohttp.ClientSession,
    url: str,
    token: str,
    max_bytes: int,
    file: SlackMediaFile,
) -> Optional[tuple[bytes, str]]:
    current_url = url
    for _ in range(MAX_REDIRECTS + 1):
        async with session.get(
            current_url,
            headers={"Authorization": f"Bearer {token}"},
            allow_redirects=False,
        ) as response:
            if 300 <= response.status < 400:
                location = response.headers.get("Location")
                if not location:
                    logger.warning("Slack media redirect without Location for %s", file.id)
                    return None
                current_url = str(response.url.join(URL(location)))
                continue

            if response.status >= 400:
                logger.warning("Slack media fetch failed for %s: HTTP %s", file.id, response.status)
                return None

            content_type = response.headers.get("Content-Type", "")
            if _looks_like_login_page(content_type, file):
                logger.warning("Slack media fetch for %s returned HTML (auth failure?)", file.id)
                return None

            declared = response.headers.get("Content-Length")
            if declared and declared.isdigit() and int(declared) > max_bytes:
                raise MediaTooLarge(f"{file.id}: {declared} bytes > {max_bytes}")

            buffer = bytearray()
            async for chunk in response.content.iter_chunked(CHUNK_SIZE):
                buffer.extend(chunk)
                if len(buffer) > max_bytes:
                    raise MediaTooLarge(f"{file.id}: more than {max_bytes} bytes")

            return bytes(buffer), content_type.split(";")[0].strip()

    logger.warning("Slack media fetch for %s exceeded %d redirects", file.id, MAX_REDIRECTS)
    return None


async def resolve_slack_media(
    files: Sequence[SlackMediaFile],
    token: str,
    max_bytes: int,
    *,
    media_dir: Optional[str] = None,
    session: Optional[aiohttp.ClientSession] = None,
) -> list[SlackMediaResult]:
    """Download Slack files and save them under ``media_dir``.

    Files without a download URL, files over ``max_bytes`` and failed
    downloads are skipped (logged), so the result may be shorter than
    ``files`` or empty.

    Args:
        files: Files to fetch.
        token: Bot token used as bearer credential.
        max_bytes: Per-file size cap.
        media_dir: Target directory. Defaults to ``SLACK_MEDIA_DIR``.
        session: Optional aiohttp session to reuse.

    Returns:
        One SlackMediaResult per saved file, in input order.
    """
    if media_dir is None:
        from slackgate.config.settings import settings

        media_dir = settings.SLACK_MEDIA_DIR

    owns_session = session is None
    if session is None:
        session = aiohttp.ClientSession()

    results: list[SlackMediaResult] = []
    try:
        for file in files:
            url = file.download_url
            if not url:
                continue
            try:
                fetched = await _fetch(session, url, token, max_bytes, file)
            except MediaTooLarge as e:
                logger.warning("Skipping Slack file over size cap: %s", e)
                continue
            except aiohttp.ClientError as e:
                logger.warning("Slack media fetch error for %s: %s", file.id, e)
                continue
            except asyncio.TimeoutError:
                logger.warning("Slack media fetch timed out for %s", file.id)
                continue
            if fetched is None:
                continue

            data, content_type = fetched
            os.makedirs(media_dir, exist_ok=True)
            path = os.path.join(media_dir, _safe_filename(file))
            with open(path, "wb") as fh:
                fh.write(data)

            results.append(
                SlackMediaResult(
                    path=path,
                    content_type=file.mimetype or content_type or None,
                    placeholder=media_placeholder(file),
                )
            )
    finally:
        if owns_session:
            await session.close()

    return results
