"""Slack enrichment source.

Fetches the lookback window of a channel and tags each message with the
severity levels found in its text and the statuses found in its reactions.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, List, Optional

from core.config import LabelTables
from core.models import Channel, EnrichedMessage, RawMessage
from core.ports import NotifierPort

# Housekeeping events that are never triage requests.
IGNORED_SUBTYPES = {
    "channel_archive",
    "channel_join",
    "channel_leave",
    "channel_name",
    "channel_purpose",
    "channel_topic",
    "pinned_item",
}


def _reaction_name(label: str) -> str:
    # ":white_check_mark:" -> "white_check_mark"
    return label.strip().strip(":")


class SlackEnrichmentSource:
    """EnrichmentPort adapter using the configured label tables."""

    def __init__(
        self,
        labels: LabelTables,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._labels = labels
        self._clock = clock

    async def fetch_window(
        self, channel_id: str, lookback_hours: float, client: NotifierPort
    ) -> List[RawMessage]:
        oldest = self._clock() - timedelta(hours=lookback_hours)
        return await client.fetch_history(channel_id, oldest.timestamp())

    def levels_for(self, message: RawMessage) -> frozenset[str]:
        return frozenset(
            key for key, label in self._labels.level_to_emoji.items() if label in message.text
        )

    def statuses_for(self, message: RawMessage) -> frozenset[str]:
        reactions = set(message.reactions)
        return frozenset(
            key
            for key, label in self._labels.status_to_emoji.items()
            if _reaction_name(label) in reactions
        )

    def enrich(
        self, messages: Iterable[RawMessage], channel: Channel, bot_id: Optional[str]
    ) -> List[EnrichedMessage]:
        """Drop the bot's own posts and housekeeping events, tag the rest."""

        enriched: List[EnrichedMessage] = []
        for message in messages:
            if bot_id and message.bot_id == bot_id:
                continue
            if message.subtype in IGNORED_SUBTYPES:
                continue
            enriched.append(
                EnrichedMessage(
                    channel=channel,
                    ts=message.ts,
                    text=message.text,
                    user=message.user,
                    levels=self.levels_for(message),
                    statuses=self.statuses_for(message),
                )
            )
        return enriched
