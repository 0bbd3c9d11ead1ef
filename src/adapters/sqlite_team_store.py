"""SQLite team store adapter.

Implements the core TeamStorePort using a simple SQLite database.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from typing import List

from core.errors import StoreError
from core.models import Workspace


class SQLiteTeamStore:
    """Thin SQLite wrapper that satisfies the TeamStorePort contract."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Create the teams table if it does not exist.

        Fields:
        - team_id: Slack team id (PRIMARY KEY)
        - name: workspace name for log readability
        - bot_token: xoxb token used to build the workspace client
        - bot_id: bot id, used to skip the bot's own messages
        - bot_user_id: bot user id
        - installed_at: timestamp of the latest registration
        """

        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS teams (
                        team_id TEXT PRIMARY KEY,
                        name TEXT,
                        bot_token TEXT NOT NULL,
                        bot_id TEXT,
                        bot_user_id TEXT,
                        installed_at TIMESTAMP NOT NULL
                    )
                    """
                )
        except sqlite3.Error as exc:
            raise StoreError(f"Could not initialize team store at {self._db_path}: {exc}") from exc

    def save(self, workspace: Workspace) -> None:
        """Upsert a workspace registration."""

        now = datetime.now(timezone.utc)
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO teams (team_id, name, bot_token, bot_id, bot_user_id, installed_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    ON CONFLICT(team_id) DO UPDATE SET
                        name = excluded.name,
                        bot_token = excluded.bot_token,
                        bot_id = excluded.bot_id,
                        bot_user_id = excluded.bot_user_id,
                        installed_at = excluded.installed_at
                    """,
                    (
                        workspace.team_id,
                        workspace.name,
                        workspace.bot_token,
                        workspace.bot_id,
                        workspace.bot_user_id,
                        now.isoformat(),
                    ),
                )
        except sqlite3.Error as exc:
            raise StoreError(f"Could not save team {workspace.team_id}: {exc}") from exc

    def delete(self, team_id: str) -> bool:
        """Remove a workspace (uninstall). Returns True when a row was deleted."""

        try:
            with self._connect() as conn:
                cur = conn.execute("DELETE FROM teams WHERE team_id = ?", (team_id,))
                return cur.rowcount > 0
        except sqlite3.Error as exc:
            raise StoreError(f"Could not delete team {team_id}: {exc}") from exc

    def find_all(self) -> List[Workspace]:
        """Return every registered workspace, ordered by team_id."""

        try:
            with self._connect() as conn:
                rows = conn.execute(
                    "SELECT team_id, name, bot_token, bot_id, bot_user_id FROM teams ORDER BY team_id"
                ).fetchall()
        except sqlite3.Error as exc:
            raise StoreError(f"Could not list teams from {self._db_path}: {exc}") from exc
        return [
            Workspace(
                team_id=row["team_id"],
                bot_token=row["bot_token"],
                bot_id=row["bot_id"],
                bot_user_id=row["bot_user_id"],
                name=row["name"],
            )
            for row in rows
        ]
