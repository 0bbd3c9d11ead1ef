"""Application entry point for triage reminders."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Iterable, Optional

from art import tprint
from dotenv import load_dotenv

import settings
from adapters.slack_enrichment import SlackEnrichmentSource
from adapters.sqlite_team_store import SQLiteTeamStore
from client import build_workspace_client, describe_workspace, load_archive_url
from core.config import (
    ScanConfig,
    SchedulerConfig,
    build_label_tables,
    build_reminder_policies,
)
from core.errors import StartupConfigError
from core.scanner import ScanOrchestrator
from core.scheduler import ReminderScheduler

NAME = "TRIAGE"
FONT = "tarty-1"


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def add_secrets(self, secrets: Iterable[str]) -> None:
        merged = set(self._secrets) | {secret for secret in secrets if secret}
        self._secrets = sorted(merged, key=len, reverse=True)

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict) -> list[str]:
    redact_cfg = config.get("redact", {}) if config else {}
    if not redact_cfg.get("enabled", False):
        return []
    values = []
    for name in redact_cfg.get("patterns", []):
        value = os.getenv(name)
        if value:
            values.append(value)
    return sorted(set(values), key=len, reverse=True)


def _redact_tokens(tokens: Iterable[str]) -> None:
    """Mask stored bot tokens in every handler using the redacting formatter."""

    tokens = list(tokens)
    for handler in logging.getLogger().handlers:
        if isinstance(handler.formatter, _RedactingFormatter):
            handler.formatter.add_secrets(tokens)


def _configure_logging() -> None:
    config = settings.LOGGING or {}
    if not config.get("enabled", False):
        return

    load_dotenv()
    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    secrets = _collect_redaction_values(config)
    formatter = _RedactingFormatter(secrets, fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/triage.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)


def _open_store() -> SQLiteTeamStore:
    store = SQLiteTeamStore(settings.DB_PATH)
    store.init_db()
    return store


def _build_scheduler(store: SQLiteTeamStore) -> tuple[ReminderScheduler, list]:
    """Validate configuration and wire the core with Slack adapters."""

    labels = build_label_tables(settings.LEVEL_TO_EMOJI, settings.STATUS_TO_EMOJI)
    policies = build_reminder_policies(settings.SCHEDULED_REMINDERS, labels)

    orchestrator = ScanOrchestrator(
        team_store=store,
        notifier_factory=build_workspace_client,
        enrichment=SlackEnrichmentSource(labels),
        labels=labels,
        archive_url=load_archive_url(),
        scan_config=ScanConfig(
            channel_page_size=settings.CHANNEL_PAGE_SIZE,
            max_channel_pages=settings.MAX_CHANNEL_PAGES,
        ),
    )
    scheduler = ReminderScheduler(
        orchestrator,
        SchedulerConfig(
            max_concurrent_scans=settings.MAX_CONCURRENT_SCANS,
            misfire_grace_time=settings.MISFIRE_GRACE_TIME,
        ),
    )
    return scheduler, policies


async def _serve(scheduler: ReminderScheduler, trigger_now: bool) -> None:
    # The AsyncIOScheduler binds to the running loop on start.
    scheduler.start()
    if trigger_now:
        await scheduler.trigger_all_now()
    try:
        await asyncio.Event().wait()
    finally:
        scheduler.shutdown()


def _run(trigger_now: bool) -> None:
    _print_banner()
    _configure_logging()
    logger = logging.getLogger(__name__)

    logger.info("Starting triage reminders")

    store = _open_store()
    workspaces = store.find_all()
    _redact_tokens(workspace.bot_token for workspace in workspaces)
    logger.info("%s teams are registered", len(workspaces))

    scheduler, policies = _build_scheduler(store)
    # Refuses to start when no reminders are configured.
    scheduler.register_all(policies)

    try:
        asyncio.run(_serve(scheduler, trigger_now))
    except KeyboardInterrupt:
        logger.info("Shutting down")


def _trigger() -> None:
    _configure_logging()
    logger = logging.getLogger(__name__)

    store = _open_store()
    _redact_tokens(workspace.bot_token for workspace in store.find_all())
    scheduler, policies = _build_scheduler(store)
    if not policies:
        raise StartupConfigError("No scheduled reminders configured")

    reports = asyncio.run(scheduler.trigger_all_now(policies))
    for report in reports:
        logger.info(
            "%s: %s/%s teams ok, %s digests, %s replies (%s failed)",
            report.policy_name,
            report.workspaces_succeeded,
            report.workspaces_total,
            report.digests_posted,
            report.replies_posted,
            report.replies_failed,
        )


def _add_team(token: Optional[str]) -> None:
    _configure_logging()
    load_dotenv()
    token = token or os.getenv("SLACK_BOT_TOKEN")
    if not token:
        raise RuntimeError("Pass --token or set SLACK_BOT_TOKEN")

    _redact_tokens([token])
    workspace = asyncio.run(describe_workspace(token))
    store = _open_store()
    store.save(workspace)
    print(f"Registered team {workspace.name or ''} ({workspace.team_id})")


def _remove_team(team_id: str) -> None:
    _configure_logging()
    store = _open_store()
    if not store.delete(team_id):
        print(f"Team {team_id} is not registered")
        return
    print(f"Removed team {team_id}")


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="triage-reminders")
    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", help="Schedule reminders and keep running")
    run_parser.add_argument(
        "--trigger-now",
        action="store_true",
        help="Also run every reminder once at startup.",
    )
    subparsers.add_parser("trigger", help="Run every reminder once and exit")
    add_parser = subparsers.add_parser("add-team", help="Register a workspace from its bot token")
    add_parser.add_argument("--token", help="Bot token (defaults to SLACK_BOT_TOKEN)")
    remove_parser = subparsers.add_parser("remove-team", help="Unregister a workspace (after uninstall)")
    remove_parser.add_argument("team_id", help="Slack team id, e.g. T012AB3C4")

    args = parser.parse_args(argv)
    if args.command == "trigger":
        _trigger()
        return
    if args.command == "add-team":
        _add_team(args.token)
        return
    if args.command == "remove-team":
        _remove_team(args.team_id)
        return
    _run(getattr(args, "trigger_now", False))


if __name__ == "__main__":
    main()
