"""
Database table creation script.

Creates the chat state table in the database named by CHATBOX_DB_URL.

Dependencies: sqlalchemy, aiosqlite, chatbox.configs
System role: Database schema initialization

Usage:
    python -m chatbox.boundary.db.create_tables
"""

import asyncio
import logging

from chatbox.boundary.db.connection import create_all_tables, get_async_engine
from chatbox.configs import get_settings
from chatbox.observability.logger import configure_logging

logger = logging.getLogger(__name__)


async def main() -> None:
    """Create all tables, then dispose of the engine."""
    engine = get_async_engine()
    try:
        await create_all_tables(engine)
        logger.info("Chat state tables created", extra={"db_url": get_settings().database.url})
    finally:
        await engine.dispose()


if __name__ == "__main__":
    configure_logging(get_settings().log_level)
    asyncio.run(main())
