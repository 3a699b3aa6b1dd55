import logging
from datetime import datetime, timezone

from bson import ObjectId

from filestore.core.errors import NotFound, StorageReadError, StorageWriteError
from filestore.models.file import FileRecord
from filestore.services.storage import BlobStore, parse_object_id, rechunk

logger = logging.getLogger(__name__)


class MemoryBlobStore(BlobStore):
    """
    Process-local blob store.

    Records and chunk sets are kept in separate maps, like the collections
    of the MongoDB stores, so orphaned chunks can exist and be swept.
    ``capacity_bytes`` caps the total stored bytes; exceeding it fails the
    upload with StorageWriteError.
    """

    def __init__(self, chunk_size: int = 255 * 1024, capacity_bytes: int | None = None):
        self.chunk_size = chunk_size
        self.capacity_bytes = capacity_bytes
        self.records = {}
        self.chunks = {}

    def _records(self, bucket: str) -> dict:
        return self.records.setdefault(bucket, {})

    def _chunks(self, bucket: str) -> dict:
        return self.chunks.setdefault(bucket, {})

    def stored_bytes(self) -> int:
        return sum(
            len(data)
            for bucket_chunks in self.chunks.values()
            for chunk_set in bucket_chunks.values()
            for data in chunk_set
        )

    async def put(self, bucket, filename, content_type, stream):
        oid = ObjectId()
        chunk_set = []
        chunks = self._chunks(bucket)
        chunks[oid] = chunk_set
        try:
            async for data in rechunk(stream, self.chunk_size):
                if self.capacity_bytes is not None and self.stored_bytes() + len(data) > self.capacity_bytes:
                    raise StorageWriteError("Write capacity exceeded")
                chunk_set.append(data)
        except BaseException:
            del chunks[oid]
            raise

        record = FileRecord(
            id=oid,
            filename=filename,
            content_type=content_type,
            length=sum(len(data) for data in chunk_set),
            chunk_size=self.chunk_size,
            uploaded_at=datetime.now(timezone.utc),
            bucket=bucket,
        )
        self._records(bucket)[oid] = record
        logger.info("Stored %s in %s as %s", filename, bucket, oid)
        return record

    async def get(self, bucket, file_id):
        record = self._records(bucket).get(parse_object_id(file_id))
        if record is None:
            raise NotFound()
        return record

    async def list(self, bucket):
        return sorted(self._records(bucket).values(), key=lambda record: record.uploaded_at)

    async def find_latest(self, bucket, filename):
        matches = [record for record in self._records(bucket).values() if record.filename == filename]
        if not matches:
            raise NotFound()
        # ObjectIds grow with creation time; ties on uploaded_at resolve to the later one
        return max(matches, key=lambda record: (record.uploaded_at, ObjectId(record.id)))

    async def open_read_stream(self, bucket, file_id):
        record = await self.get(bucket, file_id)
        return self._iter_chunks(bucket, ObjectId(record.id), record.length)

    async def _iter_chunks(self, bucket: str, oid: ObjectId, length: int):
        received = 0
        for data in list(self._chunks(bucket).get(oid, [])):
            received += len(data)
            yield data
        if received != length:
            raise StorageReadError(f"Expected {length} bytes of {oid}, read {received}")

    async def delete(self, bucket, file_id):
        oid = parse_object_id(file_id)
        if self._records(bucket).pop(oid, None) is None:
            raise NotFound()
        self._chunks(bucket).pop(oid, None)
        logger.info("Deleted %s from %s", file_id, bucket)

    async def sweep_orphans(self, bucket, older_than):
        cutoff = datetime.now(timezone.utc) - older_than
        records = self._records(bucket)
        chunks = self._chunks(bucket)
        orphans = [
            oid for oid in chunks
            if oid not in records and oid.generation_time < cutoff
        ]
        for oid in orphans:
            del chunks[oid]
        if orphans:
            logger.warning("Removed %d orphaned objects from %s", len(orphans), bucket)
        return len(orphans)
