"""
Check database status

Reports whether the database is reachable, which application tables are
missing and how many rows the existing ones hold. Run after deploys or
when the dashboard shows no data:

    python scripts/check_database.py
    python scripts/check_database.py --create   # local dev only, production uses alembic
"""
import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import func, select
from loguru import logger

from config.config import ENVIRONMENT
from src.database.engine import (
    check_connection,
    dispose_engine,
    get_missing_tables,
    get_session_maker,
    init_db,
)
from src.database.models import Lead, PayoutRequest, User


async def check_database(create_missing: bool = False) -> bool:
    """Log connection state, missing tables and row counts"""

    logger.info("🔍 Checking database connection...")
    if not await check_connection():
        logger.error("❌ Database is not reachable, check DATABASE_URL")
        return False

    missing = await get_missing_tables()
    if missing and create_missing:
        if ENVIRONMENT == "production":
            logger.error("❌ Refusing to create tables in production, run: alembic upgrade head")
            return False
        await init_db()
        missing = await get_missing_tables()

    if missing:
        logger.warning(f"⚠️ Missing tables: {', '.join(missing)}")
        logger.warning("Run: alembic upgrade head")

    session_maker = get_session_maker()
    async with session_maker() as session:
        for model in (User, Lead, PayoutRequest):
            if model.__tablename__ in missing:
                continue
            count = await session.scalar(select(func.count()).select_from(model))
            logger.info(f"📊 {model.__tablename__}: {count} rows")

    if not missing:
        logger.info("✅ Database is initialised")
    return not missing


async def main():
    parser = argparse.ArgumentParser(description="Check database status")
    parser.add_argument(
        "--create",
        action="store_true",
        help="Create missing tables from the models (development only)",
    )
    args = parser.parse_args()

    try:
        ok = await check_database(create_missing=args.create)
    finally:
        await dispose_engine()
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    asyncio.run(main())
