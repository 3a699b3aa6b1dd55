from minio import Minio

from filestore.core.config import Settings
from filestore.core.database import Database
from filestore.services.gridfs_store import GridFSBlobStore
from filestore.services.memory_store import MemoryBlobStore
from filestore.services.minio_store import MinioBlobStore
from filestore.services.storage import BlobStore


def build_store(settings: Settings, database: Database) -> BlobStore:
    """Create the blob store selected by STORAGE_BACKEND.

    The MongoDB-backed stores need ``database.connect()`` to have run.
    """
    if settings.STORAGE_BACKEND == "memory":
        return MemoryBlobStore(chunk_size=settings.CHUNK_SIZE_BYTES)

    if settings.STORAGE_BACKEND == "minio":
        client = Minio(
            endpoint=settings.MINIO_ENDPOINT,
            access_key=settings.MINIO_ACCESS_KEY,
            secret_key=settings.MINIO_SECRET_KEY,
            secure=settings.MINIO_SECURE,
        )
        return MinioBlobStore(
            client,
            database.db,
            chunk_size=settings.CHUNK_SIZE_BYTES,
            bucket_prefix=settings.MINIO_BUCKET_PREFIX,
        )

    return GridFSBlobStore(database.db, chunk_size=settings.CHUNK_SIZE_BYTES)
