#!/usr/bin/env python3
"""
Database setup script for the article store.

Creates the database (PostgreSQL only) and all required tables.
Connection comes from BLOGSMITH_DATABASE_URL / DATABASE_URL.

Usage:
    python scripts/setup_db.py
"""
import asyncio
import sys
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import asyncpg
from dotenv import load_dotenv
from sqlalchemy.engine import make_url


async def create_database(database_url: str):
    """Create the target database if it doesn't exist."""
    url = make_url(database_url)
    if not url.get_backend_name().startswith("postgresql"):
        print(f"✓ Skipping database creation for backend: {url.get_backend_name()}")
        return

    # Connect to the default postgres database
    conn = await asyncpg.connect(
        user=url.username,
        password=url.password,
        host=url.host or "localhost",
        port=url.port or 5432,
        database="postgres",
    )

    try:
        exists = await conn.fetchval(
            "SELECT 1 FROM pg_database WHERE datname = $1",
            url.database,
        )

        if not exists:
            await conn.execute(f'CREATE DATABASE "{url.database}"')
            print(f"✓ Created database: {url.database}")
        else:
            print(f"✓ Database already exists: {url.database}")

    finally:
        await conn.close()


async def create_tables():
    """Create all tables using SQLAlchemy models."""
    from blogstore.database import dispose_engine, init_db
    from blogstore.models import Base

    await init_db()
    await dispose_engine()

    print("✓ Created tables:")
    for table_name in Base.metadata.tables.keys():
        print(f"  - {table_name}")


async def main():
    from blogstore.database import get_database_url

    load_dotenv()
    database_url = get_database_url()

    print("Setting up article store...")
    await create_database(database_url)
    await create_tables()
    print("\n✓ Setup complete!")


if __name__ == "__main__":
    asyncio.run(main())
