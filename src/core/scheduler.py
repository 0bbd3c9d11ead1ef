"""Recurring triggers for reminder policies.

Each policy gets its own APScheduler cron job running on the asyncio event
loop. Jobs call ``ScanOrchestrator.run_once`` which never raises, so a failed
scan cannot stop later firings of any trigger.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from core.config import ReminderPolicy, SchedulerConfig
from core.errors import StartupConfigError
from core.models import ScanReport
from core.scanner import ScanOrchestrator

LOGGER = logging.getLogger(__name__)

JOB_PREFIX = "reminder:"


# Crontab numbers weekdays from Sunday (0 or 7); APScheduler numbers them from
# Monday. Names mean the same thing to both.
CRONTAB_DAY_NAMES = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")


def crontab_day_of_week(field: str) -> str:
    """Translate a crontab day-of-week field into APScheduler weekday names.

    Numeric values, ranges, lists and steps are expanded into an explicit
    list of names (``"1-5"`` -> ``"mon,tue,wed,thu,fri"``). Name tokens pass
    through unchanged.
    """

    if field == "*":
        return field

    days: List[str] = []
    for part in field.split(","):
        base, _, step = part.partition("/")
        if base == "*":
            first, last = "0", "6"
        elif "-" in base:
            first, _, last = base.partition("-")
        else:
            first, last = base, ("6" if step else base)
        if not (first.isdigit() and last.isdigit()):
            days.append(part)
            continue
        start, end = int(first), int(last)
        if not 0 <= start <= end <= 7 or (step and not step.isdigit()) or step == "0":
            raise ValueError(f"invalid day_of_week token {part!r}")
        for number in range(start, end + 1, int(step or 1)):
            days.append(CRONTAB_DAY_NAMES[number % 7])
    return ",".join(dict.fromkeys(days))


def build_trigger(expression: str, timezone: str) -> CronTrigger:
    """Build a CronTrigger from a 5-field crontab or a 6-field one with seconds.

    Day-of-week follows crontab numbering (0 and 7 are Sunday).
    """

    fields = expression.split()
    if len(fields) == 5:
        fields = ["0"] + fields
    if len(fields) != 6:
        raise StartupConfigError(
            f"Cron expression {expression!r} must have 5 or 6 fields, got {len(expression.split())}"
        )
    second, minute, hour, day, month, day_of_week = fields
    try:
        return CronTrigger(
            second=second,
            minute=minute,
            hour=hour,
            day=day,
            month=month,
            day_of_week=crontab_day_of_week(day_of_week),
            timezone=timezone,
        )
    except (ValueError, LookupError) as exc:
        raise StartupConfigError(f"Invalid cron expression {expression!r}: {exc}") from exc


class ReminderScheduler:
    """Registers one recurring job per policy and supports manual runs."""

    def __init__(
        self,
        orchestrator: ScanOrchestrator,
        config: Optional[SchedulerConfig] = None,
        scheduler: Optional[AsyncIOScheduler] = None,
    ) -> None:
        self._orchestrator = orchestrator
        self._config = config or SchedulerConfig()
        self._scheduler = scheduler or AsyncIOScheduler()
        self._policies: List[ReminderPolicy] = []

    @property
    def policies(self) -> List[ReminderPolicy]:
        return list(self._policies)

    def job_ids(self) -> List[str]:
        return [job.id for job in self._scheduler.get_jobs()]

    def register_all(self, policies: Optional[Iterable[ReminderPolicy]]) -> None:
        """Schedule every policy. An empty policy list is fatal."""

        policies = list(policies or [])
        if not policies:
            LOGGER.error("Sorry but there are no scheduled reminders to schedule.")
            LOGGER.error("Please add some to scheduled_reminders in config.json and restart the app")
            raise StartupConfigError("No scheduled reminders configured")

        seen = {policy.name for policy in self._policies}
        for policy in policies:
            if policy.name in seen:
                raise StartupConfigError(f"Duplicate reminder name {policy.name!r}")
            seen.add(policy.name)

        # Build every trigger before adding any job so a bad expression
        # leaves nothing half-registered.
        triggers = [(policy, build_trigger(policy.expression, policy.timezone)) for policy in policies]
        for policy, trigger in triggers:
            self._scheduler.add_job(
                self._orchestrator.run_once,
                trigger=trigger,
                args=[policy],
                id=f"{JOB_PREFIX}{policy.name}",
                name=policy.name,
                replace_existing=True,
                coalesce=True,
                max_instances=self._config.max_concurrent_scans,
                misfire_grace_time=self._config.misfire_grace_time,
            )
            self._policies.append(policy)
            LOGGER.info("Scheduled reminder %s (%s, %s)", policy.name, policy.expression, policy.timezone)

    async def trigger_all_now(self, policies: Optional[Iterable[ReminderPolicy]] = None) -> List[ScanReport]:
        """Run every policy once, right now, bypassing the schedule."""

        selected = list(policies) if policies is not None else self.policies
        LOGGER.debug("Manually triggering %s scheduled reminder(s)", len(selected))
        return list(await asyncio.gather(*(self._orchestrator.run_once(policy) for policy in selected)))

    def start(self) -> None:
        self._scheduler.start()
        LOGGER.info("Scheduler started with %s job(s)", len(self._scheduler.get_jobs()))

    def shutdown(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
