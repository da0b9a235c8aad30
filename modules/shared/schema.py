import logging

from .db import Database

logger = logging.getLogger("shared.schema")

SCHEMA_SQL = """
    -- Preferences table: device-local settings (identity, report draft) per profile
    CREATE TABLE IF NOT EXISTS preferences (
        profile_id VARCHAR(64) NOT NULL,
        namespace VARCHAR(32) NOT NULL CHECK (namespace IN ('identity', 'draft')),
        key VARCHAR(64) NOT NULL,
        value JSONB NOT NULL,
        updated_at TIMESTAMP WITH TIME ZONE DEFAULT NOW(),
        PRIMARY KEY (profile_id, namespace, key)
    );

    CREATE INDEX IF NOT EXISTS idx_preferences_namespace ON preferences (profile_id, namespace);
"""


async def create_tables(db: Database):
    """Create the tables backing the preference store"""
    try:
        async with db.connection() as conn:
            async with conn.transaction():
                await conn.execute(SCHEMA_SQL)
                logger.info("Database tables and indexes created successfully.")
    except Exception as e:
        logger.error(f"Error creating tables: {str(e)}")
        raise
