"""
Grant or revoke the DocLens admin flag by email (recovery script)

Use when ADMIN_EMAILS was not set at registration time for an operator.

Usage (from backend/):
  python -m scripts.set_admin_by_email admin@example.com
  python -m scripts.set_admin_by_email admin@example.com --revoke
"""

import asyncio
import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from database import get_db_context
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def set_admin(db, email: str, is_admin: bool = True) -> bool:
    """
    Set is_admin on the user with this email (case-insensitive).
    Returns True if the user exists, False otherwise.
    """
    email_lower = email.strip().lower()
    if not email_lower:
        logger.error("Email is required")
        return False

    result = await db.users.update_one(
        {"email": email_lower},
        {"$set": {"is_admin": is_admin}}
    )
    if result.matched_count == 0:
        logger.warning("No user found with email: %s", email_lower)
        return False
    logger.info("Set is_admin=%s for %s", is_admin, email_lower)
    return True


async def _run(email: str, is_admin: bool) -> bool:
    async with get_db_context() as db:
        return await set_admin(db, email, is_admin)


def main():
    parser = argparse.ArgumentParser(description="Grant or revoke DocLens admin by email")
    parser.add_argument("email", help="User email")
    parser.add_argument("--revoke", action="store_true", help="Remove the admin flag instead")
    args = parser.parse_args()

    ok = asyncio.run(_run(args.email, not args.revoke))
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
