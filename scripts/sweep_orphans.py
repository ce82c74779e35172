"""
Repair blobs and records left behind by interrupted ingestions.

Usage: python scripts/sweep_orphans.py [owner_id ...]
"""
import asyncio
import os
import sys
import uuid

# Add the project root to the Python path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from app.core.config import settings
from app.core.db import SessionLocal
from app.core.logging import setup_logging
from app.modules.images.sweeper import OrphanSweeper
from app.platform.provider_registry import registry


async def main(argv: list[str]):
    owner_ids = [uuid.UUID(a) for a in argv] or None
    async with SessionLocal() as session:
        sweeper = OrphanSweeper(session, registry.object_storage(), stale_after_seconds=settings.SWEEP_STALE_AFTER_SECONDS)
        report = await sweeper.run(owner_ids)
    print(f"stale records marked failed: {len(report.stale_marked_failed)}")
    print(f"orphaned blobs deleted:      {len(report.orphaned_deleted)}")
    if report.orphaned_failed:
        print(f"orphaned blobs NOT deleted:  {len(report.orphaned_failed)}")
        for key in report.orphaned_failed:
            print(f"    - {key}")
        return 1
    return 0


if __name__ == "__main__":
    setup_logging()
    sys.exit(asyncio.run(main(sys.argv[1:])))
