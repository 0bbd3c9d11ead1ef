"""Policy filter for enriched messages (core domain)."""

from __future__ import annotations

from typing import Iterable, List

from core.config import ReminderPolicy
from core.models import EnrichedMessage


def _intersects(tags: Iterable[str], wanted: Iterable[str]) -> bool:
    return not set(tags).isdisjoint(wanted)


def matches_policy(message: EnrichedMessage, policy: ReminderPolicy) -> bool:
    """Return True when the message should be reported under the policy.

    A message qualifies when it carries at least one of the policy levels and
    none of the policy's resolving statuses. A message without any level never
    qualifies.
    """

    if not _intersects(message.levels, policy.report_on_levels):
        return False
    return not _intersects(message.statuses, policy.report_on_does_not_have_status)


def filter_messages(messages: Iterable[EnrichedMessage], policy: ReminderPolicy) -> List[EnrichedMessage]:
    """Return the messages matching the policy, preserving input order."""

    return [message for message in messages if matches_policy(message, policy)]
