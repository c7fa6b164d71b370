"""Create the scheduling tables directly from the table models.

Meant for local development databases; deployed databases are migrated with
``scripts/migrate.py``.
"""

import asyncio

from consult_scheduler.database import engine
from consult_scheduler.models import metadata


async def init_db() -> None:
    """Initialize the database by creating all tables."""
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)

    await engine.dispose()
    print("✓ Database initialized successfully!")


if __name__ == "__main__":
    asyncio.run(init_db())
