"""Slack client factory for triage reminders.

One AsyncWebClient is built per workspace from the token stored for it, so a
revoked token only ever affects its own workspace.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv
from slack_sdk.web.async_client import AsyncWebClient

from adapters.slack_client import SlackWorkspaceClient
from core.errors import StartupConfigError
from core.models import Workspace


def load_archive_url() -> str:
    """Return the workspace archive URL root (SLACK_URL) from the environment.

    We read it via python-dotenv so it can live in .env next to the tokens.
    """

    load_dotenv()

    archive_url = os.getenv("SLACK_URL", "").strip()
    # Fail fast: without it every digest reply would carry a broken link.
    if not archive_url:
        raise StartupConfigError("Missing SLACK_URL in environment (e.g. https://acme.slack.com/)")
    return archive_url


def build_workspace_client(workspace: Workspace) -> SlackWorkspaceClient:
    """Create the NotifierPort adapter for one workspace."""

    if not workspace.bot_token:
        raise StartupConfigError(f"Team {workspace.team_id} has no bot token")

    logging.getLogger(__name__).debug("Initializing Slack client for team %s", workspace.team_id)

    return SlackWorkspaceClient(AsyncWebClient(token=workspace.bot_token))


async def describe_workspace(bot_token: str) -> Workspace:
    """Resolve team and bot identity for a token via auth.test."""

    response = await AsyncWebClient(token=bot_token).auth_test()
    return Workspace(
        team_id=response["team_id"],
        bot_token=bot_token,
        bot_id=response.get("bot_id"),
        bot_user_id=response.get("user_id"),
        name=response.get("team"),
    )
