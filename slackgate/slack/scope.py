"""File share scoping for Slack downloads.

Decides whether a file returned by ``files.info`` may be fetched on behalf
of a given channel/thread. Slack reports where a file was shared in several
overlapping fields:

- ``channels``, ``groups`` and ``ims``: flat lists of conversation ids.
- ``shares.public`` and ``shares.private``: maps of conversation id to a
  list of share entries, each optionally carrying ``ts`` and ``thread_ts``.

Any of these may be missing depending on token scopes and file age. The
guard only reports a mismatch when the metadata that *is* present excludes
the requested scope. Missing metadata never blocks a download.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Optional, Union

_DIRECT_SHARE_FIELDS = ("channels", "groups", "ims")
_SHARE_MAP_KEYS = ("public", "private")


@dataclass(frozen=True)
class ThreadShare:
    """One share entry of a file inside a conversation."""

    channel_id: str
    ts: Optional[str] = None
    thread_ts: Optional[str] = None

    @property
    def has_evidence(self) -> bool:
        return bool(self.ts or self.thread_ts)

    def matches(self, thread_id: str) -> bool:
        return self.thread_ts == thread_id or self.ts == thread_id


@dataclass(frozen=True)
class ScopeQuery:
    """The channel/thread an action is performed against. Both optional."""

    channel_id: Optional[str] = None
    thread_id: Optional[str] = None


def normalize_scope_value(value: Any) -> Optional[str]:
    """Trim a scope identifier. Non-strings and blank strings become None."""
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    return trimmed or None


def collect_direct_share_channel_ids(file: Mapping[str, Any]) -> set[str]:
    """Merge ``channels``, ``groups`` and ``ims`` into one id set."""
    ids: set[str] = set()
    for name in _DIRECT_SHARE_FIELDS:
        group = file.get(name)
        if not isinstance(group, list):
            continue
        for entry in group:
            normalized = normalize_scope_value(entry)
            if normalized:
                ids.add(normalized)
    return ids


def collect_share_maps(file: Mapping[str, Any]) -> list[Mapping[str, Any]]:
    """Return the ``shares.public`` / ``shares.private`` maps that are present."""
    shares = file.get("shares")
    if not isinstance(shares, Mapping):
        return []
    return [shares[key] for key in _SHARE_MAP_KEYS if isinstance(shares.get(key), Mapping)]


def _parse_share_entries(raw_entries: Any, channel_id: str) -> list[ThreadShare]:
    if not isinstance(raw_entries, list):
        return []
    return [
        ThreadShare(
            channel_id=channel_id,
            ts=normalize_scope_value(entry.get("ts")),
            thread_ts=normalize_scope_value(entry.get("thread_ts")),
        )
        for entry in raw_entries
        if isinstance(entry, Mapping)
    ]


def _group_share_map(
    share_map: Mapping[str, Any],
) -> dict[str, tuple[ThreadShare, ...]]:
    grouped: dict[str, list[ThreadShare]] = {}
    for raw_channel_id, raw_entries in share_map.items():
        channel_id = normalize_scope_value(raw_channel_id)
        if not channel_id:
            continue
        grouped.setdefault(channel_id, []).extend(
            _parse_share_entries(raw_entries, channel_id)
        )
    return {channel_id: tuple(entries) for channel_id, entries in grouped.items()}


def collect_shared_channel_ids(file: Mapping[str, Any]) -> set[str]:
    """Collect the conversation ids keyed in any share map."""
    ids: set[str] = set()
    for share_map in collect_share_maps(file):
        for channel_id in share_map:
            normalized = normalize_scope_value(channel_id)
            if normalized:
                ids.add(normalized)
    return ids


def collect_thread_shares(
    file: Mapping[str, Any], channel_id: str
) -> list[ThreadShare]:
    """Flatten the share entries recorded for ``channel_id`` across share maps."""
    matches: list[ThreadShare] = []
    for share_map in collect_share_maps(file):
        matches.extend(_group_share_map(share_map).get(channel_id, ()))
    return matches


@dataclass(frozen=True)
class FileShareMetadata:
    """Normalized share evidence for a single file.

    Attributes:
        direct_channel_ids: Ids from ``channels``, ``groups`` and ``ims``.
        share_maps: One mapping per present share map (public, private),
            channel id to its share entries.
    """

    direct_channel_ids: frozenset[str] = frozenset()
    share_maps: tuple[Mapping[str, tuple[ThreadShare, ...]], ...] = field(
        default_factory=tuple
    )

    @classmethod
    def from_file(cls, file: Mapping[str, Any]) -> "FileShareMetadata":
        """Build share metadata from a raw ``files.info`` file object."""
        return cls(
            direct_channel_ids=frozenset(collect_direct_share_channel_ids(file)),
            share_maps=tuple(
                _group_share_map(share_map) for share_map in collect_share_maps(file)
            ),
        )

    @property
    def shared_channel_ids(self) -> frozenset[str]:
        return frozenset(
            channel_id for share_map in self.share_maps for channel_id in share_map
        )

    @property
    def has_channel_evidence(self) -> bool:
        return bool(self.direct_channel_ids or self.shared_channel_ids)

    def contains_channel(self, channel_id: str) -> bool:
        return (
            channel_id in self.direct_channel_ids
            or channel_id in self.shared_channel_ids
        )

    def thread_shares(self, channel_id: str) -> list[ThreadShare]:
        return [
            share
            for share_map in self.share_maps
            for share in share_map.get(channel_id, ())
        ]


FileLike = Union[FileShareMetadata, Mapping[str, Any]]


def evaluate_scope_mismatch(file: FileLike, query: ScopeQuery) -> bool:
    """Return True when share evidence contradicts the requested scope.

    The channel is checked first: if any channel evidence exists and the
    requested channel is not part of it, the scope mismatches. The thread
    is only checked when the channel carries share entries with a ``ts`` or
    ``thread_ts``; then one of them has to equal the requested thread.
    """
    channel_id = normalize_scope_value(query.channel_id)
    if not channel_id:
        return False

    metadata = (
        file if isinstance(file, FileShareMetadata) else FileShareMetadata.from_file(file)
    )

    if metadata.has_channel_evidence and not metadata.contains_channel(channel_id):
        return True

    thread_id = normalize_scope_value(query.thread_id)
    if not thread_id:
        return False

    thread_shares = metadata.thread_shares(channel_id)
    if not thread_shares:
        return False

    thread_evidence = [share for share in thread_shares if share.has_evidence]
    if not thread_evidence:
        return False

    return not any(share.matches(thread_id) for share in thread_evidence)


def has_scope_mismatch(
    file: FileLike,
    channel_id: Optional[str] = None,
    thread_id: Optional[str] = None,
) -> bool:
    """Keyword form of :func:`evaluate_scope_mismatch`."""
    return evaluate_scope_mismatch(
        file, ScopeQuery(channel_id=channel_id, thread_id=thread_id)
    )
