"""
Script to create the indexes the file store relies on.
Run this once per deployment; it is safe to run again.
"""
import asyncio
from filestore.core.config import settings
from filestore.core.database import db
from filestore.services.backends import build_store
from filestore.services.maintenance import create_indexes
from filestore.services.namespaces import build_namespaces

async def main():
    print(f"Creating indexes for the {settings.STORAGE_BACKEND} backend...")

    db.connect()
    try:
        store = build_store(settings, db)
        buckets = await create_indexes(store, build_namespaces(settings))
        for bucket in buckets:
            print(f"✅ Indexes ready for bucket {bucket}")
        print("\n✨ All indexes created successfully!")
    finally:
        db.close()

if __name__ == "__main__":
    asyncio.run(main())
