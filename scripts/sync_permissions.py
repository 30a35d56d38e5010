"""
Sync permissions and system roles from the enums to the database.

Usage:
    python scripts/sync_permissions.py
"""
import asyncio
import os
import sys

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.database import async_session_maker, close_db
from app.services.rbac_service import RBACService


async def sync_permissions():
    print("Syncing permissions from enum to database...\n")

    async with async_session_maker() as db:
        summary = await RBACService(db).sync()

    print("Sync complete!")
    print(f"  Created: {summary['created']}")
    print(f"  Skipped: {summary['skipped']}")
    if summary["module_disabled"]:
        print(f"  Module-disabled: {summary['module_disabled']}")
    if summary["roles_created"]:
        print(f"  Roles created: {', '.join(summary['roles_created'])}")
    if summary["roles_updated"]:
        print(f"  Roles updated: {', '.join(summary['roles_updated'])}")

    await close_db()


if __name__ == "__main__":
    asyncio.run(sync_permissions())
