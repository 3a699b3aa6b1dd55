"""Maintenance jobs that run outside the request path."""

import logging
from datetime import timedelta

from filestore.services.namespaces import BucketNamespace
from filestore.services.storage import BlobStore

logger = logging.getLogger(__name__)


async def create_indexes(store: BlobStore, namespaces: list[BucketNamespace]) -> list[str]:
    """Create the lookup indexes for every namespace bucket.

    Returns:
        Names of the buckets that were processed.
    """
    buckets = []
    for namespace in namespaces:
        await store.ensure_indexes(namespace.bucket)
        logger.info("Indexes ready for bucket %s", namespace.bucket)
        buckets.append(namespace.bucket)
    return buckets


async def sweep_orphans(
    store: BlobStore,
    namespaces: list[BucketNamespace],
    older_than: timedelta,
) -> dict[str, int]:
    """Remove chunk sets left without a record by interrupted uploads.

    Only objects created before ``older_than`` ago are considered, so
    uploads still in flight are never touched.

    Returns:
        Number of orphaned objects removed, per bucket.
    """
    removed = {}
    for namespace in namespaces:
        removed[namespace.bucket] = await store.sweep_orphans(namespace.bucket, older_than)
    logger.info("Orphan sweep finished: %s", removed)
    return removed
