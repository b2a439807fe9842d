#!/usr/bin/env python3
"""Initialize boardbot database.

Usage:
    python scripts/init_db.py              # Create tables (dev only)
    python scripts/init_db.py --reset      # Drop and recreate (DANGER)
"""

import argparse
import asyncio
import sys

# Add src to path
sys.path.insert(0, "src")

from sqlalchemy import text

from boardbot.config import settings
from boardbot.db.session import async_engine, close_db, drop_db, init_db


async def verify_connection() -> None:
    """Test database connection."""
    async with async_engine.connect() as conn:
        result = await conn.execute(text("SELECT version()"))
        print(f"✓ Connected to: {result.scalar()}")


async def main() -> int:
    parser = argparse.ArgumentParser(description="Initialize boardbot database")
    parser.add_argument("--reset", action="store_true", help="Drop and recreate tables (DANGER)")
    args = parser.parse_args()

    print(f"Database URL: {settings.database_url.split('@')[-1]}")
    print()

    try:
        await verify_connection()

        if args.reset:
            print("⚠️  DANGER: Dropping all tables...")
            await drop_db()
            print("✓ All tables dropped")

        await init_db()
        print("✓ Tables created from models")
        return 0

    except Exception as e:
        print(f"❌ Error: {e}")
        return 1

    finally:
        await close_db()


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
