from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from core.config import ReminderPolicy, SchedulerConfig
from core.errors import StartupConfigError
from core.models import ScanReport
from core.scheduler import ReminderScheduler, build_trigger, crontab_day_of_week


def _policy(name: str, expression: str = "0 9 * * 1-5") -> ReminderPolicy:
    return ReminderPolicy(
        name=name,
        expression=expression,
        hours_to_look_back=24,
        report_on_levels=("red",),
        report_on_does_not_have_status=("complete",),
    )


class FakeOrchestrator:
    def __init__(self) -> None:
        self.runs: list[str] = []

    async def run_once(self, policy: ReminderPolicy) -> ScanReport:
        self.runs.append(policy.name)
        return ScanReport(policy_name=policy.name)


def _fields(trigger: CronTrigger) -> dict[str, str]:
    return {field.name: str(field) for field in trigger.fields}


def test_empty_policy_list_is_fatal_and_registers_nothing() -> None:
    scheduler = ReminderScheduler(FakeOrchestrator(), scheduler=AsyncIOScheduler())
    with pytest.raises(StartupConfigError):
        scheduler.register_all([])
    with pytest.raises(StartupConfigError):
        scheduler.register_all(None)
    assert scheduler.job_ids() == []
    assert scheduler.policies == []


def test_registers_one_job_per_policy() -> None:
    backend = AsyncIOScheduler()
    scheduler = ReminderScheduler(
        FakeOrchestrator(),
        SchedulerConfig(max_concurrent_scans=2, misfire_grace_time=30),
        scheduler=backend,
    )
    policies = [_policy("morning"), _policy("weekly", "0 9 * * 1")]

    scheduler.register_all(policies)

    assert sorted(scheduler.job_ids()) == ["reminder:morning", "reminder:weekly"]
    job = backend.get_job("reminder:weekly")
    assert job.args == (policies[1],)
    assert job.max_instances == 2
    assert _fields(job.trigger)["day_of_week"] == "mon"
    assert str(job.trigger.timezone) == "America/Los_Angeles"


def test_invalid_expression_registers_nothing() -> None:
    scheduler = ReminderScheduler(FakeOrchestrator(), scheduler=AsyncIOScheduler())
    with pytest.raises(StartupConfigError):
        scheduler.register_all([_policy("ok"), _policy("bad", "every monday")])
    assert scheduler.job_ids() == []


def test_build_trigger_accepts_seconds_field() -> None:
    trigger = build_trigger("30 0 9 * * 1-5", "UTC")
    fields = _fields(trigger)
    assert fields["second"] == "30"
    assert fields["hour"] == "9"
    assert fields["day_of_week"] == "mon,tue,wed,thu,fri"


def test_build_trigger_rejects_out_of_range_values() -> None:
    with pytest.raises(StartupConfigError):
        build_trigger("99 9 * * *", "UTC")


def test_trigger_all_now_runs_every_registered_policy() -> None:
    orchestrator = FakeOrchestrator()
    scheduler = ReminderScheduler(orchestrator, scheduler=AsyncIOScheduler())
    scheduler.register_all([_policy("a"), _policy("b")])

    reports = asyncio.run(scheduler.trigger_all_now())

    assert sorted(orchestrator.runs) == ["a", "b"]
    assert [report.policy_name for report in reports] == ["a", "b"]


def test_trigger_all_now_with_explicit_policies() -> None:
    orchestrator = FakeOrchestrator()
    scheduler = ReminderScheduler(orchestrator, scheduler=AsyncIOScheduler())

    asyncio.run(scheduler.trigger_all_now([_policy("adhoc")]))

    assert orchestrator.runs == ["adhoc"]


def _fire_days(expression: str, count: int) -> list[str]:
    trigger = build_trigger(expression, "UTC")
    # Sunday 2023-07-23
    now = datetime(2023, 7, 23, tzinfo=timezone.utc)
    days = []
    for _ in range(count):
        fire_time = trigger.get_next_fire_time(None, now)
        days.append(fire_time.strftime("%a"))
        now = fire_time + timedelta(seconds=1)
    return days


def test_weekday_numbers_follow_crontab_convention() -> None:
    assert _fire_days("0 9 * * 1-5", 5) == ["Mon", "Tue", "Wed", "Thu", "Fri"]
    assert _fire_days("0 9 * * 1", 1) == ["Mon"]
    assert _fire_days("0 9 * * 0", 1) == ["Sun"]
    assert _fire_days("0 9 * * 7", 1) == ["Sun"]
    assert _fire_days("0 0 9 * * 6", 1) == ["Sat"]


@pytest.mark.parametrize(
    "field, expected",
    [
        ("*", "*"),
        ("1-5", "mon,tue,wed,thu,fri"),
        ("0,6", "sun,sat"),
        ("*/2", "sun,tue,thu,sat"),
        ("1-5/2", "mon,wed,fri"),
        ("5-7", "fri,sat,sun"),
        ("mon-fri", "mon-fri"),
    ],
)
def test_crontab_day_of_week_translation(field: str, expected: str) -> None:
    assert crontab_day_of_week(field) == expected


def test_day_of_week_out_of_range_is_rejected() -> None:
    with pytest.raises(StartupConfigError):
        build_trigger("0 9 * * 8", "UTC")


def test_duplicate_policy_names_are_rejected() -> None:
    scheduler = ReminderScheduler(FakeOrchestrator(), scheduler=AsyncIOScheduler())
    with pytest.raises(StartupConfigError, match="x"):
        scheduler.register_all([_policy("x"), _policy("x", "0 9 * * 1")])
    assert scheduler.job_ids() == []
    assert scheduler.policies == []


def test_policy_name_already_registered_is_rejected() -> None:
    scheduler = ReminderScheduler(FakeOrchestrator(), scheduler=AsyncIOScheduler())
    scheduler.register_all([_policy("x")])
    with pytest.raises(StartupConfigError):
        scheduler.register_all([_policy("x", "0 9 * * 1")])
    assert scheduler.job_ids() == ["reminder:x"]
