"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for the team store, the per-workspace chat
client and the enrichment source so that the core can be reused with
different backends.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Protocol

from core.models import Channel, EnrichedMessage, RawMessage, ThreadAnchor, Workspace


class TeamStorePort(Protocol):
    """Read access to registered workspaces."""

    def find_all(self) -> List[Workspace]:
        ...


class NotifierPort(Protocol):
    """Chat operations for one authenticated workspace."""

    async def list_bot_channels(
        self,
        exclude_archived: bool = True,
        types: str = "public_channel",
        limit: int = 100,
        max_pages: int = 1,
    ) -> List[Channel]:
        ...

    async def fetch_history(self, channel_id: str, oldest: float) -> List[RawMessage]:
        ...

    async def post_message(
        self,
        channel: str,
        text: str,
        thread_ts: Optional[str] = None,
        unfurl_links: bool = False,
    ) -> ThreadAnchor:
        ...


class EnrichmentPort(Protocol):
    """Fetches a channel window and tags messages with levels and statuses."""

    async def fetch_window(
        self, channel_id: str, lookback_hours: float, client: NotifierPort
    ) -> List[RawMessage]:
        ...

    def enrich(
        self, messages: Iterable[RawMessage], channel: Channel, bot_id: Optional[str]
    ) -> List[EnrichedMessage]:
        ...


class NotifierFactory(Protocol):
    """Builds a NotifierPort from a workspace credential."""

    def __call__(self, workspace: Workspace) -> NotifierPort:
        ...
