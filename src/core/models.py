"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to Slack-specific payloads.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


@dataclass(frozen=True)
class Workspace:
    """One registered installation of the bot."""

    team_id: str
    bot_token: str
    bot_id: Optional[str] = None
    bot_user_id: Optional[str] = None
    name: Optional[str] = None


@dataclass(frozen=True)
class Channel:
    id: str
    name: Optional[str] = None


@dataclass(frozen=True)
class RawMessage:
    """Platform message reduced to the fields enrichment needs."""

    ts: str
    channel_id: str
    user: Optional[str]
    text: str
    bot_id: Optional[str] = None
    subtype: Optional[str] = None
    reactions: tuple[str, ...] = ()


@dataclass(frozen=True)
class EnrichedMessage:
    """Message tagged with the levels and statuses derived from it.

    Channel and ts are always present because they are needed to build the
    permalink used in digest replies.
    """

    channel: Channel
    ts: str
    text: str
    user: Optional[str] = None
    levels: frozenset[str] = field(default_factory=frozenset)
    statuses: frozenset[str] = field(default_factory=frozenset)

    @property
    def posted_at(self) -> datetime:
        return datetime.fromtimestamp(float(self.ts), tz=timezone.utc)


@dataclass(frozen=True)
class ThreadAnchor:
    """Channel + ts pair identifying a posted message."""

    channel_id: str
    ts: str


@dataclass(frozen=True)
class DigestPost:
    text: str
    unfurl_links: bool = False


@dataclass(frozen=True)
class NotificationBatch:
    """Digest for one channel: a summary plus one threaded reply per message."""

    channel: Channel
    summary: DigestPost
    replies: tuple[DigestPost, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.replies


@dataclass
class ScanReport:
    """Outcome of one scan of every workspace for a single policy."""

    policy_name: str
    workspaces_total: int = 0
    failed_workspaces: dict[str, str] = field(default_factory=dict)
    channels_scanned: int = 0
    digests_posted: int = 0
    replies_posted: int = 0
    replies_failed: int = 0
    aborted: bool = False

    @property
    def workspaces_succeeded(self) -> int:
        return self.workspaces_total - len(self.failed_workspaces)
