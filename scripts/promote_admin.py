"""
Grant or revoke admin rights

The user must have signed in once so the account exists.

Usage:
    python scripts/promote_admin.py admin@example.com
    python scripts/promote_admin.py admin@example.com --revoke
"""
import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger

from src.database.engine import dispose_engine, get_session_maker
from src.database.crud import get_user_by_email


async def set_admin(email: str, is_admin: bool) -> bool:
    session_maker = get_session_maker()
    async with session_maker() as session:
        user = await get_user_by_email(session, email)
        if not user:
            logger.error(f"❌ No user with email {email}")
            return False

        if user.is_admin == is_admin:
            logger.info(f"User {user.id} ({user.email}) already has is_admin={is_admin}")
            return True

        user.is_admin = is_admin
        await session.commit()

        logger.info(f"✅ User {user.id} ({user.email}) is_admin={is_admin}")
        return True


async def main():
    parser = argparse.ArgumentParser(description="Grant or revoke admin rights")
    parser.add_argument("email")
    parser.add_argument("--revoke", action="store_true", help="Remove admin rights")
    args = parser.parse_args()

    try:
        ok = await set_admin(args.email, not args.revoke)
    finally:
        await dispose_engine()
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    asyncio.run(main())
