"""
Database schema initialization.

Creates the escalation tables and indexes and records the schema version.
Timestamps are INTEGER unix seconds (UTC).
"""

import aiosqlite
from modvote.util.logger import get_logger

logger = get_logger("database_schema")

SCHEMA_VERSION = 1


class SchemaManager:
    """Creates and versions the escalation schema."""

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
        logger.info("[SCHEMA] Database schema initialized (version %d)", SCHEMA_VERSION)

    @staticmethod
    async def _create_tables(db: aiosqlite.Connection) -> None:
        await db.execute("""
            CREATE TABLE IF NOT EXISTS escalations (
                id TEXT PRIMARY KEY,
                guild_id TEXT NOT NULL,
                thread_id TEXT NOT NULL,
                vote_message_id TEXT NOT NULL,
                reported_user_id TEXT NOT NULL,
                initiator_id TEXT NOT NULL,
                quorum INTEGER NOT NULL,
                voting_strategy TEXT,
                created_at INTEGER NOT NULL,
                scheduled_for INTEGER,
                resolved_at INTEGER,
                resolution TEXT
            )
        """)

        # One row per (escalation, voter, vote); toggling deletes the row
        await db.execute("""
            CREATE TABLE IF NOT EXISTS escalation_records (
                id TEXT PRIMARY KEY,
                escalation_id TEXT NOT NULL,
                voter_id TEXT NOT NULL,
                vote TEXT NOT NULL,
                voted_at INTEGER NOT NULL,
                UNIQUE (escalation_id, voter_id, vote),
                FOREIGN KEY (escalation_id) REFERENCES escalations(id)
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
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_escalation_records_escalation "
            "ON escalation_records(escalation_id)"
        )
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_escalations_due "
            "ON escalations(resolved_at, scheduled_for)"
        )
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_escalations_guild "
            "ON escalations(guild_id, created_at DESC)"
        )

    @staticmethod
    async def _update_schema_version(db: aiosqlite.Connection) -> None:
        await db.execute(
            "INSERT OR IGNORE INTO schema_version (version) VALUES (?)",
            (SCHEMA_VERSION,),
        )
