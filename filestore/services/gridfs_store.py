import logging
from datetime import datetime, timezone

from bson import ObjectId
from gridfs.errors import NoFile
from motor.motor_asyncio import AsyncIOMotorGridFSBucket
from pymongo import ASCENDING
from pymongo.errors import PyMongoError

from filestore.core.errors import NotFound, StorageReadError, StorageWriteError
from filestore.services.storage import MongoRecordStore, parse_object_id, rechunk

logger = logging.getLogger(__name__)

# Chunk documents fetched per round trip while streaming
READ_BATCH_SIZE = 2


class GridFSBlobStore(MongoRecordStore):
    """
    Blob store on MongoDB GridFS.

    Each bucket maps to the ``<bucket>.files`` and ``<bucket>.chunks``
    collections. GridFS writes the files document only when the upload
    stream is closed, so a record never points at a partial chunk set.
    """

    def _gridfs(self, bucket: str) -> AsyncIOMotorGridFSBucket:
        return AsyncIOMotorGridFSBucket(
            self.database, bucket_name=bucket, chunk_size_bytes=self.chunk_size
        )

    def _chunks(self, bucket: str):
        return self.database[f"{bucket}.chunks"]

    async def put(self, bucket, filename, content_type, stream):
        grid_in = self._gridfs(bucket).open_upload_stream(
            filename, metadata={"contentType": content_type}
        )
        try:
            async for data in rechunk(stream, self.chunk_size):
                await grid_in.write(data)
            await grid_in.close()
        except PyMongoError as exc:
            logger.error("Upload of %s to %s failed: %s", filename, bucket, exc)
            await self._abort(grid_in, bucket)
            raise StorageWriteError() from exc
        except BaseException:
            await self._abort(grid_in, bucket)
            raise

        logger.info("Stored %s in %s as %s", filename, bucket, grid_in._id)
        return await self.get(bucket, str(grid_in._id))

    async def _abort(self, grid_in, bucket: str) -> None:
        try:
            await grid_in.abort()
        except PyMongoError:
            # Chunks stay behind without a record; sweep_orphans removes them
            logger.exception("Could not abort upload %s in %s", grid_in._id, bucket)

    async def open_read_stream(self, bucket, file_id):
        record = await self.get(bucket, file_id)
        return self._iter_chunks(bucket, ObjectId(record.id), record.length)

    async def _iter_chunks(self, bucket: str, oid: ObjectId, length: int):
        cursor = self._chunks(bucket).find(
            {"files_id": oid},
            {"n": 1, "data": 1},
            sort=[("n", ASCENDING)],
            batch_size=READ_BATCH_SIZE,
        )
        expected = 0
        received = 0
        try:
            async for chunk in cursor:
                if chunk["n"] != expected:
                    raise StorageReadError(f"Missing chunk {expected} of {oid}")
                data = bytes(chunk["data"])
                received += len(data)
                expected += 1
                yield data
        except PyMongoError as exc:
            logger.error("Reading chunk %d of %s/%s failed: %s", expected, bucket, oid, exc)
            raise StorageReadError() from exc
        finally:
            await cursor.close()

        if received != length:
            raise StorageReadError(f"Expected {length} bytes of {oid}, read {received}")

    async def delete(self, bucket, file_id):
        oid = parse_object_id(file_id)
        try:
            await self._gridfs(bucket).delete(oid)
        except NoFile as exc:
            raise NotFound() from exc
        except PyMongoError as exc:
            logger.error("Deleting %s/%s failed: %s", bucket, file_id, exc)
            raise StorageWriteError("Could not delete file") from exc
        logger.info("Deleted %s from %s", file_id, bucket)

    async def sweep_orphans(self, bucket, older_than):
        cutoff = ObjectId.from_datetime(datetime.now(timezone.utc) - older_than)
        chunks = self._chunks(bucket)
        candidates = await chunks.distinct("files_id", {"files_id": {"$lt": cutoff}})
        if not candidates:
            return 0

        present = set(await self._files(bucket).distinct("_id", {"_id": {"$in": candidates}}))
        orphans = [oid for oid in candidates if oid not in present]
        if orphans:
            result = await chunks.delete_many({"files_id": {"$in": orphans}})
            logger.warning(
                "Removed %d orphaned chunks of %d objects from %s",
                result.deleted_count, len(orphans), bucket,
            )
        return len(orphans)

    async def ensure_indexes(self, bucket):
        await super().ensure_indexes(bucket)
        await self._chunks(bucket).create_index(
            [("files_id", ASCENDING), ("n", ASCENDING)], unique=True
        )
