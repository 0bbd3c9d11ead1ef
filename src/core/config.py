"""Core configuration dataclasses.

We keep config file parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Mapping, Optional

from core.errors import StartupConfigError

DEFAULT_TIMEZONE = "America/Los_Angeles"


@dataclass(frozen=True)
class LabelTables:
    """Display labels (emoji) for every known level and status key."""

    level_to_emoji: Mapping[str, str]
    status_to_emoji: Mapping[str, str]

    def level_labels(self, keys: Iterable[str]) -> List[str]:
        return [self.level_to_emoji[key] for key in keys]

    def status_labels(self, keys: Iterable[str]) -> List[str]:
        return [self.status_to_emoji[key] for key in keys]


@dataclass(frozen=True)
class ReminderPolicy:
    """One scheduled reminder: what to look for, how far back and when."""

    name: str
    expression: str
    hours_to_look_back: float
    report_on_levels: tuple[str, ...]
    report_on_does_not_have_status: tuple[str, ...]
    timezone: str = DEFAULT_TIMEZONE

    @property
    def days_to_look_back(self) -> float:
        return self.hours_to_look_back / 24


@dataclass(frozen=True)
class ScanConfig:
    """Channel listing settings for the scan orchestrator."""

    channel_page_size: int = 100
    max_channel_pages: int = 1


@dataclass(frozen=True)
class SchedulerConfig:
    """Trigger settings applied to every reminder job."""

    max_concurrent_scans: int = 1
    misfire_grace_time: Optional[int] = 60


def build_label_tables(levels: Mapping[str, str], statuses: Mapping[str, str]) -> LabelTables:
    """Validate the raw label maps and freeze them into a LabelTables."""

    for kind, table in (("levels", levels), ("statuses", statuses)):
        if not table:
            raise StartupConfigError(f"No {kind} labels configured")
        for key, label in table.items():
            if not isinstance(label, str) or not label.strip():
                raise StartupConfigError(f"Empty label for {kind} key {key!r}")
    return LabelTables(level_to_emoji=dict(levels), status_to_emoji=dict(statuses))


def _key_tuple(raw: object, field_name: str, policy_name: str) -> tuple[str, ...]:
    if isinstance(raw, str) or not isinstance(raw, (list, tuple)):
        raise StartupConfigError(f"{policy_name}: {field_name} must be a list")
    keys = tuple(str(key) for key in raw)
    if not keys:
        raise StartupConfigError(f"{policy_name}: {field_name} must not be empty")
    return keys


def build_reminder_policies(
    reminders_config: Optional[Iterable[dict]],
    labels: LabelTables,
) -> List[ReminderPolicy]:
    """Normalize reminder configs into ReminderPolicy objects.

    Every level and status key a policy references must have a display label,
    otherwise the digest could not be rendered and we refuse to start. Names
    must be unique because they identify the scheduled job.
    Disabled entries are skipped.
    """

    policies: List[ReminderPolicy] = []
    names: set[str] = set()
    for index, entry in enumerate(reminders_config or [], start=1):
        if not entry.get("enabled", True):
            continue
        name = str(entry.get("name") or f"reminder-{index}")
        if name in names:
            raise StartupConfigError(f"{name}: duplicate reminder name")
        names.add(name)

        expression = entry.get("expression")
        if not expression or not str(expression).strip():
            raise StartupConfigError(f"{name}: expression is required")

        try:
            hours = float(entry.get("hours_to_look_back", 0))
        except (TypeError, ValueError) as exc:
            raise StartupConfigError(f"{name}: hours_to_look_back must be a number") from exc
        if hours <= 0:
            raise StartupConfigError(f"{name}: hours_to_look_back must be positive")

        levels = _key_tuple(entry.get("report_on_levels"), "report_on_levels", name)
        statuses = _key_tuple(
            entry.get("report_on_does_not_have_status"),
            "report_on_does_not_have_status",
            name,
        )

        unknown_levels = [key for key in levels if key not in labels.level_to_emoji]
        if unknown_levels:
            raise StartupConfigError(f"{name}: no label for level(s) {', '.join(unknown_levels)}")
        unknown_statuses = [key for key in statuses if key not in labels.status_to_emoji]
        if unknown_statuses:
            raise StartupConfigError(f"{name}: no label for status(es) {', '.join(unknown_statuses)}")

        policies.append(
            ReminderPolicy(
                name=name,
                expression=str(expression).strip(),
                hours_to_look_back=hours,
                report_on_levels=levels,
                report_on_does_not_have_status=statuses,
                timezone=str(entry.get("timezone") or DEFAULT_TIMEZONE),
            )
        )
    return policies
