"""
Audit database schema.

Creates the ``mod_actions`` table, its indexes and the schema version row.
"""

import aiosqlite

from modstream.util.logger import get_logger

logger = get_logger("database_schema")

SCHEMA_VERSION = 1


class SchemaManager:
    """Creates the audit schema. Every statement is idempotent."""

    @staticmethod
    async def initialize_schema(db: aiosqlite.Connection) -> None:
        """
        Create all tables and indexes if they do not exist yet.

        Args:
            db: Open database connection
        """
        await SchemaManager._create_tables(db)
        await SchemaManager._create_indexes(db)
        await SchemaManager._update_schema_version(db)
        await db.commit()
        logger.info("[SCHEMA] Database schema initialized")

    @staticmethod
    async def _create_tables(db: aiosqlite.Connection) -> None:
        await db.execute("""
            CREATE TABLE IF NOT EXISTS mod_actions (
                id TEXT PRIMARY KEY,
                trigger_message_id TEXT NOT NULL,
                trigger_username TEXT NOT NULL,
                trigger_message_content TEXT NOT NULL DEFAULT '',
                llm_model TEXT NOT NULL DEFAULT '',
                llm_reasoning TEXT NOT NULL DEFAULT '',
                tool_call_name TEXT NOT NULL,
                tool_call_params TEXT NOT NULL DEFAULT '{}',
                target_username TEXT NOT NULL DEFAULT '',
                target_user_id TEXT NOT NULL DEFAULT '',
                twitch_api_response TEXT,
                success INTEGER NOT NULL,
                error_message TEXT NOT NULL DEFAULT '',
                channel_id TEXT NOT NULL DEFAULT '',
                channel_name TEXT NOT NULL DEFAULT '',
                created_at TEXT NOT NULL
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

    @staticmethod
    async def _create_indexes(db: aiosqlite.Connection) -> None:
        await db.execute("CREATE INDEX IF NOT EXISTS idx_mod_actions_created ON mod_actions(created_at DESC)")
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_mod_actions_target ON mod_actions(target_username, created_at DESC)"
        )
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_mod_actions_channel ON mod_actions(channel_id, created_at DESC)"
        )

    @staticmethod
    async def _update_schema_version(db: aiosqlite.Connection) -> None:
        await db.execute("INSERT OR IGNORE INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
