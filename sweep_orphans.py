"""
Script to remove chunks orphaned by interrupted uploads.
Run it periodically (e.g. from cron); it never touches objects younger
than the grace period, so uploads in flight are safe.
"""
import argparse
import asyncio
from datetime import timedelta
from filestore.core.config import settings
from filestore.core.database import db
from filestore.core.logging_config import setup_logging
from filestore.services.backends import build_store
from filestore.services.maintenance import sweep_orphans
from filestore.services.namespaces import build_namespaces

async def main(grace_hours: int):
    db.connect()
    try:
        store = build_store(settings, db)
        removed = await sweep_orphans(store, build_namespaces(settings), timedelta(hours=grace_hours))
        for bucket, count in removed.items():
            print(f"{bucket}: removed {count} orphaned objects")
    finally:
        db.close()

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--grace-hours", type=int, default=settings.ORPHAN_GRACE_HOURS,
        help="only sweep objects older than this many hours",
    )
    args = parser.parse_args()
    setup_logging()
    asyncio.run(main(args.grace_hours))
