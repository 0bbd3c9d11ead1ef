"""Digest composition (core domain).

Builds the summary message and the threaded replies for one channel. All
functions here are pure: time and the archive URL are passed in explicitly so
the output is deterministic and easy to test.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Sequence

from core.config import LabelTables, ReminderPolicy
from core.errors import StartupConfigError
from core.models import Channel, DigestPost, EnrichedMessage, NotificationBatch

_MINUTE = 60
_HOUR = 60 * _MINUTE
_DAY = 24 * _HOUR
_WEEK = 7 * _DAY
_MONTH = 30 * _DAY
_YEAR = 365 * _DAY


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'} ago"


def _nearest(value: float) -> int:
    # Half rounds up: 90 minutes is "2 hours ago".
    return int(math.floor(value + 0.5))


def format_time_ago(then: datetime, now: datetime) -> str:
    """Return a short English relative time label such as "3 hours ago".

    Each amount is rounded to the nearest unit. Under 45 seconds, and for
    timestamps in the future (clock skew), the label is "just now".
    """

    seconds = (now - then).total_seconds()
    if seconds < 45:
        return "just now"
    minutes = _nearest(seconds / _MINUTE)
    if minutes < 60:
        return _plural(max(minutes, 1), "minute")
    hours = _nearest(seconds / _HOUR)
    if hours < 24:
        return _plural(hours, "hour")
    days = _nearest(seconds / _DAY)
    if days < 7:
        return _plural(days, "day")
    if days < 30:
        return _plural(max(_nearest(seconds / _WEEK), 1), "week")
    months = _nearest(seconds / _MONTH)
    if months < 12:
        return _plural(max(months, 1), "month")
    return _plural(max(_nearest(seconds / _YEAR), 1), "year")


def build_permalink(archive_url: str, channel_id: str, ts: str) -> str:
    """Return the archive deep link for a message.

    Slack permalinks drop the decimal point from the message ts:
    ``<root>/archives/C1/p1690000000123456``.
    """

    if not archive_url or not archive_url.strip():
        raise StartupConfigError("Archive URL is not configured; cannot build permalinks")
    root = archive_url.strip().rstrip("/") + "/"
    return f"{root}archives/{channel_id}/p{ts.replace('.', '')}"


def format_days(policy: ReminderPolicy) -> str:
    # 168 hours -> "7", 12 hours -> "0.5"
    return f"{policy.days_to_look_back:g}"


def format_message_count(count: int) -> str:
    if count == 1:
        return "There is *1 message*"
    return f"There are *{count} messages*"


def _status_phrase(policy: ReminderPolicy, labels: LabelTables) -> str:
    return "/".join(labels.status_labels(policy.report_on_does_not_have_status))


def compose_reply(
    message: EnrichedMessage,
    policy: ReminderPolicy,
    labels: LabelTables,
    archive_url: str,
    now: datetime,
) -> DigestPost:
    url = build_permalink(archive_url, message.channel.id, message.ts)
    when = format_time_ago(message.posted_at, now)
    matched = [level for level in policy.report_on_levels if level in message.levels]
    prefix = " ".join(labels.level_labels(matched))
    link = f"<{url}|{when}>"
    return DigestPost(text=f"{prefix} {link}" if prefix else link)


def compose_digest(
    channel: Channel,
    messages: Sequence[EnrichedMessage],
    policy: ReminderPolicy,
    labels: LabelTables,
    archive_url: str,
    now: datetime,
) -> NotificationBatch:
    """Compose the notification batch for one channel.

    With no outstanding messages the batch is a single congratulation. With
    outstanding messages it is a summary (to be used as the thread parent) and
    one reply per message, in the order given.
    """

    days = format_days(policy)
    statuses = _status_phrase(policy, labels)

    if not messages:
        text = (
            f":tada: Nice job, <#{channel.id}>! "
            f"There are 0 messages from the past {days} days that are "
            f"tagged with a severity and don't have either {statuses}"
        )
        return NotificationBatch(channel=channel, summary=DigestPost(text=text))

    text = (
        f":wave: Hi there, <#{channel.id}>. "
        f"{format_message_count(len(messages))} from the past {days} days that are "
        f"tagged with a severity and don't have either {statuses} that need your attention."
    )
    replies = tuple(compose_reply(message, policy, labels, archive_url, now) for message in messages)
    return NotificationBatch(
        channel=channel,
        summary=DigestPost(text=text, unfurl_links=True),
        replies=replies,
    )
