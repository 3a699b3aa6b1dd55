import logging
from datetime import timedelta
from typing import AsyncIterable, AsyncIterator

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError

from filestore.core.errors import NotFound, StorageReadError
from filestore.models.file import FileRecord

logger = logging.getLogger(__name__)


def parse_object_id(file_id: str) -> ObjectId:
    # A malformed id can never name a stored file
    if not ObjectId.is_valid(file_id):
        raise NotFound()
    return ObjectId(file_id)


async def rechunk(stream: AsyncIterable[bytes], size: int) -> AsyncIterator[bytes]:
    """Regroup an arbitrary byte stream into blocks of exactly ``size`` bytes.

    Only the last block may be shorter. An empty stream yields nothing.
    """
    buffer = bytearray()
    async for data in stream:
        buffer.extend(data)
        while len(buffer) >= size:
            yield bytes(buffer[:size])
            del buffer[:size]
    if buffer:
        yield bytes(buffer)


class BlobStore:
    """
    Chunked storage for binary objects, partitioned into buckets.

    Every object has one metadata record (FileRecord) and an ordered chunk set.
    A record is only visible once all of its chunks are written, and a failed
    write leaves neither a record nor chunks behind.
    """

    chunk_size: int

    async def put(self, bucket: str, filename: str, content_type: str,
                  stream: AsyncIterable[bytes]) -> FileRecord:
        raise NotImplementedError

    async def get(self, bucket: str, file_id: str) -> FileRecord:
        raise NotImplementedError

    async def list(self, bucket: str) -> list[FileRecord]:
        raise NotImplementedError

    async def find_latest(self, bucket: str, filename: str) -> FileRecord:
        raise NotImplementedError

    async def open_read_stream(self, bucket: str, file_id: str) -> AsyncIterator[bytes]:
        """
        Look the object up and return a single-pass iterator over its bytes.

        NotFound is raised here, before any byte is produced. The iterator
        raises StorageReadError if a chunk is missing or unreadable.
        """
        raise NotImplementedError

    async def delete(self, bucket: str, file_id: str) -> None:
        raise NotImplementedError

    async def sweep_orphans(self, bucket: str, older_than: timedelta) -> int:
        raise NotImplementedError

    async def ensure_indexes(self, bucket: str) -> None:
        pass


class MongoRecordStore(BlobStore):
    """Keeps FileRecords in the GridFS-style ``<bucket>.files`` collection."""

    def __init__(self, database, chunk_size: int):
        self.database = database
        self.chunk_size = chunk_size

    def _files(self, bucket: str):
        return self.database[f"{bucket}.files"]

    async def get(self, bucket, file_id):
        oid = parse_object_id(file_id)
        try:
            doc = await self._files(bucket).find_one({"_id": oid})
        except PyMongoError as exc:
            logger.error("Could not look up %s/%s: %s", bucket, file_id, exc)
            raise StorageReadError() from exc
        if not doc:
            raise NotFound()
        return FileRecord.from_document(doc, bucket)

    async def list(self, bucket):
        try:
            docs = await self._files(bucket).find({}, sort=[("uploadDate", ASCENDING)]).to_list(None)
        except PyMongoError as exc:
            logger.error("Could not list bucket %s: %s", bucket, exc)
            raise StorageReadError() from exc
        return [FileRecord.from_document(doc, bucket) for doc in docs]

    async def find_latest(self, bucket, filename):
        try:
            doc = await self._files(bucket).find_one(
                {"filename": filename}, sort=[("uploadDate", DESCENDING), ("_id", DESCENDING)]
            )
        except PyMongoError as exc:
            logger.error("Could not look up %s/%s by name: %s", bucket, filename, exc)
            raise StorageReadError() from exc
        if not doc:
            raise NotFound()
        return FileRecord.from_document(doc, bucket)

    async def ensure_indexes(self, bucket):
        await self._files(bucket).create_index([("filename", ASCENDING), ("uploadDate", ASCENDING)])
