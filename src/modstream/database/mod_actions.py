"""
Persistent storage for moderation audit records.

Rows are append-only. ``created_at`` is stored as an ISO-8601 UTC string so
lexical order matches chronological order. Tool parameters are stored as JSON
text and the raw Twitch response as decoded text.
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import aiosqlite

from modstream.database.db_connection import ConnectionManager, db_connection
from modstream.datatypes.moderation_datatypes import ModAction
from modstream.util.logger import get_logger

logger = get_logger("mod_actions_repo")

_COLUMNS = (
    "id, trigger_message_id, trigger_username, trigger_message_content, llm_model, "
    "llm_reasoning, tool_call_name, tool_call_params, target_username, target_user_id, "
    "twitch_api_response, success, error_message, channel_id, channel_name, created_at"
)


def _row_to_action(row: aiosqlite.Row) -> ModAction:
    response = row["twitch_api_response"]
    return ModAction(
        id=row["id"],
        trigger_message_id=row["trigger_message_id"],
        trigger_username=row["trigger_username"],
        trigger_message_content=row["trigger_message_content"],
        llm_model=row["llm_model"],
        llm_reasoning=row["llm_reasoning"],
        tool_call_name=row["tool_call_name"],
        tool_call_params=json.loads(row["tool_call_params"] or "{}"),
        target_username=row["target_username"],
        target_user_id=row["target_user_id"],
        api_response=response.encode("utf-8") if response is not None else None,
        success=bool(row["success"]),
        error_message=row["error_message"],
        channel_id=row["channel_id"],
        channel_name=row["channel_name"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )


class ModActionRepository:
    """Audit store backed by the ``mod_actions`` table."""

    def __init__(self, connection: ConnectionManager = db_connection) -> None:
        self._connection = connection

    async def append(self, action: ModAction) -> str:
        """Insert one audit record and return its id."""
        async with self._connection.transaction() as conn:
            await conn.execute(
                f"INSERT INTO mod_actions ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    action.id,
                    action.trigger_message_id,
                    action.trigger_username,
                    action.trigger_message_content,
                    action.llm_model,
                    action.llm_reasoning,
                    action.tool_call_name,
                    action.params_json,
                    action.target_username,
                    action.target_user_id,
                    action.api_response_text,
                    int(action.success),
                    action.error_message,
                    action.channel_id,
                    action.channel_name,
                    action.created_at.isoformat(),
                ),
            )
        logger.debug("[AUDIT] Stored mod action %s (%s)", action.id, action.tool_call_name)
        return action.id

    async def recent(self, limit: int = 10, username: Optional[str] = None) -> List[ModAction]:
        """Return the newest records first, optionally only those targeting ``username``."""
        async with self._connection.read() as conn:
            if username:
                cursor = await conn.execute(
                    f"SELECT {_COLUMNS} FROM mod_actions WHERE target_username = ? "
                    "ORDER BY created_at DESC LIMIT ?",
                    (username, limit),
                )
            else:
                cursor = await conn.execute(
                    f"SELECT {_COLUMNS} FROM mod_actions ORDER BY created_at DESC LIMIT ?",
                    (limit,),
                )
            rows = await cursor.fetchall()
        return [_row_to_action(row) for row in rows]

    async def count_successful_for_user(self, username: str, hours_back: int = 24) -> int:
        """Count successful actions targeting ``username`` within the last ``hours_back`` hours."""
        since = datetime.now(timezone.utc) - timedelta(hours=hours_back)
        async with self._connection.read() as conn:
            cursor = await conn.execute(
                "SELECT COUNT(*) FROM mod_actions "
                "WHERE target_username = ? AND created_at > ? AND success = 1",
                (username, since.isoformat()),
            )
            row = await cursor.fetchone()
        return int(row[0]) if row else 0
