"""Slack Web API adapter for one workspace.

Implements the core NotifierPort on top of slack_sdk's AsyncWebClient and
maps Slack payloads and failures onto core types.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Optional

import aiohttp
from slack_sdk.errors import SlackApiError
from slack_sdk.web.async_client import AsyncWebClient

from core.errors import AuthError, NetworkError, NotifierError, RateLimitError
from core.models import Channel, RawMessage, ThreadAnchor

LOGGER = logging.getLogger(__name__)

# Slack error codes meaning the token is no longer usable for this team.
AUTH_ERRORS = {
    "account_inactive",
    "invalid_auth",
    "missing_scope",
    "not_authed",
    "team_access_not_granted",
    "token_expired",
    "token_revoked",
}


def _translate(exc: Exception, method: str) -> NotifierError:
    if isinstance(exc, SlackApiError):
        response = exc.response
        code = response.get("error", "unknown_error") if response is not None else "unknown_error"
        if code == "ratelimited":
            retry_after = None
            headers = getattr(response, "headers", None) or {}
            if headers.get("Retry-After"):
                retry_after = int(headers["Retry-After"])
            return RateLimitError(f"{method}: rate limited", retry_after=retry_after)
        if code in AUTH_ERRORS:
            return AuthError(f"{method}: {code}")
        return NotifierError(f"{method}: {code}")
    return NetworkError(f"{method}: {exc!r}")


def message_from_payload(payload: dict[str, Any], channel_id: str) -> RawMessage:
    """Build a RawMessage from a conversations.history entry."""

    reactions = tuple(reaction.get("name", "") for reaction in payload.get("reactions") or [])
    return RawMessage(
        ts=str(payload["ts"]),
        channel_id=channel_id,
        user=payload.get("user"),
        text=payload.get("text") or "",
        bot_id=payload.get("bot_id"),
        subtype=payload.get("subtype"),
        reactions=reactions,
    )


class SlackWorkspaceClient:
    """NotifierPort adapter bound to one workspace's bot token."""

    def __init__(self, web_client: AsyncWebClient) -> None:
        self._web = web_client

    async def _call(self, method: str, **kwargs: Any):
        try:
            return await getattr(self._web, method)(**kwargs)
        except (SlackApiError, aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise _translate(exc, method) from exc

    async def list_bot_channels(
        self,
        exclude_archived: bool = True,
        types: str = "public_channel",
        limit: int = 100,
        max_pages: int = 1,
    ) -> List[Channel]:
        """Return the channels the bot is a member of."""

        channels: List[Channel] = []
        cursor: Optional[str] = None
        for _ in range(max(1, max_pages)):
            kwargs: dict[str, Any] = {"exclude_archived": exclude_archived, "types": types, "limit": limit}
            if cursor:
                kwargs["cursor"] = cursor
            response = await self._call("users_conversations", **kwargs)
            for entry in response.get("channels") or []:
                channels.append(Channel(id=entry["id"], name=entry.get("name")))
            cursor = (response.get("response_metadata") or {}).get("next_cursor")
            if not cursor:
                break
        LOGGER.debug("Bot is a member of %s channel(s)", len(channels))
        return channels

    async def fetch_history(self, channel_id: str, oldest: float) -> List[RawMessage]:
        """Return every top-level message posted after ``oldest`` (epoch seconds)."""

        messages: List[RawMessage] = []
        cursor: Optional[str] = None
        while True:
            kwargs: dict[str, Any] = {"channel": channel_id, "oldest": f"{oldest:.6f}", "limit": 200}
            if cursor:
                kwargs["cursor"] = cursor
            response = await self._call("conversations_history", **kwargs)
            for payload in response.get("messages") or []:
                messages.append(message_from_payload(payload, channel_id))
            cursor = (response.get("response_metadata") or {}).get("next_cursor")
            if not response.get("has_more") or not cursor:
                break
        return messages

    async def post_message(
        self,
        channel: str,
        text: str,
        thread_ts: Optional[str] = None,
        unfurl_links: bool = False,
    ) -> ThreadAnchor:
        kwargs: dict[str, Any] = {"channel": channel, "text": text, "unfurl_links": unfurl_links}
        if thread_ts:
            kwargs["thread_ts"] = thread_ts
        response = await self._call("chat_postMessage", **kwargs)
        return ThreadAnchor(channel_id=response["channel"], ts=response["ts"])
