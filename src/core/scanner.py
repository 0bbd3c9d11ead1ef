"""Scan orchestration for one reminder policy.

This module is integration-agnostic. It only relies on ports for the team
store, the chat client and the enrichment source.

The scan order is:
1) Load every registered workspace (failure aborts the whole tick)
2) Process each workspace in its own supervised task
3) List the bot's public channels
4) Fetch + enrich the lookback window per channel
5) Filter, compose and dispatch the digest

A failure inside a workspace never stops the other workspaces.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from core.config import LabelTables, ReminderPolicy, ScanConfig
from core.digest import compose_digest
from core.digest_filter import filter_messages
from core.errors import DispatchError, StartupConfigError, WorkspaceError
from core.models import Channel, NotificationBatch, ScanReport, Workspace
from core.ports import EnrichmentPort, NotifierFactory, NotifierPort, TeamStorePort

LOGGER = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ScanOrchestrator:
    """Runs one scan-and-notify pass over every workspace for a policy."""

    def __init__(
        self,
        team_store: TeamStorePort,
        notifier_factory: NotifierFactory,
        enrichment: EnrichmentPort,
        labels: LabelTables,
        archive_url: str,
        scan_config: Optional[ScanConfig] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if not archive_url or not archive_url.strip():
            raise StartupConfigError("Archive URL (SLACK_URL) is required to build message links")
        self._team_store = team_store
        self._notifier_factory = notifier_factory
        self._enrichment = enrichment
        self._labels = labels
        self._archive_url = archive_url
        self._scan = scan_config or ScanConfig()
        self._clock = clock

    async def run_once(self, policy: ReminderPolicy) -> ScanReport:
        """Scan every workspace for the policy. Never raises."""

        report = ScanReport(policy_name=policy.name)
        LOGGER.info("Running reminder %s at %s", policy.name, self._clock().isoformat())

        try:
            workspaces = self._team_store.find_all()
        except Exception:
            LOGGER.exception("Could not load workspaces for reminder %s; skipping this run", policy.name)
            report.aborted = True
            return report

        report.workspaces_total = len(workspaces)
        results = await asyncio.gather(
            *(self._supervise(workspace, policy, report) for workspace in workspaces)
        )
        for error in results:
            if error is not None:
                report.failed_workspaces[error.team_id] = repr(error.cause)

        LOGGER.info(
            "Reminder %s done: workspaces=%s, failed=%s, channels=%s, digests=%s, replies=%s",
            policy.name,
            report.workspaces_total,
            len(report.failed_workspaces),
            report.channels_scanned,
            report.digests_posted,
            report.replies_posted,
        )
        return report

    async def _supervise(
        self, workspace: Workspace, policy: ReminderPolicy, report: ScanReport
    ) -> Optional[WorkspaceError]:
        # Failure boundary: one broken or uninstalled workspace must not halt the rest.
        try:
            await self._scan_workspace(workspace, policy, report)
        except Exception as exc:
            LOGGER.exception("ERROR processing team %s", workspace.team_id)
            return WorkspaceError(workspace.team_id, exc)
        return None

    async def _scan_workspace(self, workspace: Workspace, policy: ReminderPolicy, report: ScanReport) -> None:
        LOGGER.info("Processing team %s", workspace.team_id)
        client = self._notifier_factory(workspace)
        channels = await client.list_bot_channels(
            exclude_archived=True,
            types="public_channel",
            limit=self._scan.channel_page_size,
            max_pages=self._scan.max_channel_pages,
        )
        for channel in channels:
            await self._scan_channel(client, workspace, channel, policy, report)
            report.channels_scanned += 1

    async def _scan_channel(
        self,
        client: NotifierPort,
        workspace: Workspace,
        channel: Channel,
        policy: ReminderPolicy,
        report: ScanReport,
    ) -> None:
        raw = await self._enrichment.fetch_window(channel.id, policy.hours_to_look_back, client)
        LOGGER.debug(
            "Found %s total messages in %s in past %s hours",
            len(raw),
            channel.id,
            policy.hours_to_look_back,
        )
        enriched = self._enrichment.enrich(raw, channel, workspace.bot_id)
        matching = filter_messages(enriched, policy)
        LOGGER.info("%s messages in %s match reminder %s", len(matching), channel.id, policy.name)

        batch = compose_digest(channel, matching, policy, self._labels, self._archive_url, self._clock())
        await self._dispatch(client, batch, report)

    async def _dispatch(self, client: NotifierPort, batch: NotificationBatch, report: ScanReport) -> None:
        # The summary must land first: replies need its ts as the thread anchor.
        anchor = await client.post_message(
            batch.channel.id,
            batch.summary.text,
            unfurl_links=batch.summary.unfurl_links,
        )
        report.digests_posted += 1

        for position, reply in enumerate(batch.replies, start=1):
            try:
                await client.post_message(
                    anchor.channel_id,
                    reply.text,
                    thread_ts=anchor.ts,
                    unfurl_links=reply.unfurl_links,
                )
            except Exception as exc:
                error = DispatchError(
                    f"reply {position}/{len(batch.replies)} to {anchor.channel_id}:{anchor.ts} failed: {exc!r}"
                )
                LOGGER.warning("%s", error)
                report.replies_failed += 1
                continue
            report.replies_posted += 1
