from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from core.config import LabelTables, ReminderPolicy
from core.digest import build_permalink, compose_digest, format_message_count, format_time_ago
from core.errors import StartupConfigError
from core.models import Channel, EnrichedMessage

LABELS = LabelTables(
    level_to_emoji={"red": ":red_circle:", "blue": ":large_blue_circle:"},
    status_to_emoji={"complete": ":white_check_mark:", "wont_do": ":x:"},
)
NOW = datetime(2023, 7, 22, 12, 0, tzinfo=timezone.utc)
ARCHIVE_URL = "https://acme.slack.com/"


def _policy(hours: float = 168) -> ReminderPolicy:
    return ReminderPolicy(
        name="weekly",
        expression="0 9 * * 1",
        hours_to_look_back=hours,
        report_on_levels=("red", "blue"),
        report_on_does_not_have_status=("complete", "wont_do"),
    )


def _message(ts: str, levels=("red",)) -> EnrichedMessage:
    return EnrichedMessage(channel=Channel(id="C1"), ts=ts, text="broken", levels=frozenset(levels))


def test_permalink_drops_decimal_point() -> None:
    link = build_permalink(ARCHIVE_URL, "C1", "1690000000.123456")
    assert link == "https://acme.slack.com/archives/C1/p1690000000123456"


def test_permalink_adds_missing_trailing_slash() -> None:
    link = build_permalink("https://acme.slack.com", "C1", "1690000000.123456")
    assert link == "https://acme.slack.com/archives/C1/p1690000000123456"


def test_permalink_requires_archive_url() -> None:
    with pytest.raises(StartupConfigError):
        build_permalink("", "C1", "1690000000.123456")


def test_message_count_pluralization() -> None:
    assert format_message_count(1) == "There is *1 message*"
    assert format_message_count(2) == "There are *2 messages*"
    assert format_message_count(10) == "There are *10 messages*"


@pytest.mark.parametrize(
    "delta, expected",
    [
        (timedelta(seconds=5), "just now"),
        (timedelta(minutes=1), "1 minute ago"),
        (timedelta(minutes=45), "45 minutes ago"),
        (timedelta(hours=3), "3 hours ago"),
        (timedelta(days=1), "1 day ago"),
        (timedelta(minutes=90), "2 hours ago"),
        (timedelta(days=13), "2 weeks ago"),
        (timedelta(days=8), "1 week ago"),
        (timedelta(seconds=50), "1 minute ago"),
        (timedelta(days=65), "2 months ago"),
        (timedelta(days=800), "2 years ago"),
        (timedelta(minutes=-5), "just now"),
    ],
)
def test_format_time_ago(delta: timedelta, expected: str) -> None:
    assert format_time_ago(NOW - delta, NOW) == expected


def test_empty_digest_is_single_congratulation() -> None:
    batch = compose_digest(Channel(id="C1"), [], _policy(), LABELS, ARCHIVE_URL, NOW)
    assert batch.is_empty
    assert batch.replies == ()
    assert batch.summary.text.startswith(":tada: Nice job, <#C1>!")
    assert "There are 0 messages from the past 7 days" in batch.summary.text
    assert ":white_check_mark:/:x:" in batch.summary.text


def test_single_message_digest() -> None:
    ts = f"{(NOW - timedelta(hours=3)).timestamp():.6f}"
    batch = compose_digest(Channel(id="C1"), [_message(ts)], _policy(), LABELS, ARCHIVE_URL, NOW)

    assert batch.summary.text.startswith(":wave: Hi there, <#C1>. There is *1 message* from the past 7 days")
    assert batch.summary.text.endswith("don't have either :white_check_mark:/:x: that need your attention.")
    assert batch.summary.unfurl_links
    assert len(batch.replies) == 1
    expected_link = build_permalink(ARCHIVE_URL, "C1", ts)
    assert batch.replies[0].text == f":red_circle: <{expected_link}|3 hours ago>"


def test_many_messages_keep_order_and_plural() -> None:
    first = f"{(NOW - timedelta(days=2)).timestamp():.6f}"
    second = f"{(NOW - timedelta(hours=1)).timestamp():.6f}"
    messages = [_message(first, levels=("blue",)), _message(second, levels=("red", "blue"))]
    batch = compose_digest(Channel(id="C1"), messages, _policy(), LABELS, ARCHIVE_URL, NOW)

    assert "There are *2 messages*" in batch.summary.text
    assert batch.replies[0].text.startswith(":large_blue_circle: <")
    assert batch.replies[0].text.endswith("|2 days ago>")
    assert batch.replies[1].text.startswith(":red_circle: :large_blue_circle: <")
    assert batch.replies[1].text.endswith("|1 hour ago>")


def test_fractional_days_are_rendered_compactly() -> None:
    batch = compose_digest(Channel(id="C1"), [], _policy(hours=12), LABELS, ARCHIVE_URL, NOW)
    assert "from the past 0.5 days" in batch.summary.text
