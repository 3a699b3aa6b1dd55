import asyncio
import io
import logging
from datetime import datetime, timezone

from bson import ObjectId
from minio import Minio
from minio.error import MinioException
from pymongo.errors import PyMongoError
from urllib3.exceptions import HTTPError

from filestore.core.errors import NotFound, StorageReadError, StorageWriteError
from filestore.services.storage import MongoRecordStore, parse_object_id, rechunk

logger = logging.getLogger(__name__)

# Failures raised by the MinIO client itself or its HTTP transport
MINIO_ERRORS = (MinioException, HTTPError)


def chunk_key(file_id, n: int) -> str:
    return f"{file_id}/{n:08d}"


class MinioBlobStore(MongoRecordStore):
    """
    Blob store that keeps chunks as MinIO objects and records in MongoDB.

    The chunks of object ``<id>`` are stored as ``<id>/00000000``,
    ``<id>/00000001``, ... in the MinIO bucket named after the namespace.
    The record is inserted only after the last chunk is written.
    """

    def __init__(self, client: Minio, database, chunk_size: int, bucket_prefix: str = ""):
        super().__init__(database, chunk_size)
        self.client = client
        self.bucket_prefix = bucket_prefix

    def physical_name(self, bucket: str) -> str:
        return f"{self.bucket_prefix}{bucket}"

    async def ensure_bucket(self, bucket: str) -> None:
        physical_name = self.physical_name(bucket)
        exists = await asyncio.to_thread(self.client.bucket_exists, bucket_name=physical_name)
        if not exists:
            await asyncio.to_thread(self.client.make_bucket, bucket_name=physical_name)
            logger.info("Created MinIO bucket %s", physical_name)

    async def put(self, bucket, filename, content_type, stream):
        physical_name = self.physical_name(bucket)
        oid = ObjectId()
        written = []
        length = 0
        try:
            async for data in rechunk(stream, self.chunk_size):
                key = chunk_key(oid, len(written))
                await asyncio.to_thread(
                    self.client.put_object,
                    bucket_name=physical_name,
                    object_name=key,
                    data=io.BytesIO(data),
                    length=len(data),
                    content_type="application/octet-stream",
                )
                written.append(key)
                length += len(data)

            doc = {
                "_id": oid,
                "filename": filename,
                "length": length,
                "chunkSize": self.chunk_size,
                "uploadDate": datetime.now(timezone.utc),
                "metadata": {"contentType": content_type},
            }
            await self._files(bucket).insert_one(doc)
        except (*MINIO_ERRORS, PyMongoError) as exc:
            logger.error("Upload of %s to %s failed: %s", filename, bucket, exc)
            await self._remove_chunks(physical_name, written)
            raise StorageWriteError() from exc
        except BaseException:
            await self._remove_chunks(physical_name, written)
            raise

        logger.info("Stored %s in %s as %s (%d chunks)", filename, bucket, oid, len(written))
        return await self.get(bucket, str(oid))

    async def _remove_chunks(self, physical_name: str, keys) -> int:
        removed = 0
        for key in keys:
            try:
                await asyncio.to_thread(
                    self.client.remove_object, bucket_name=physical_name, object_name=key
                )
                removed += 1
            except MINIO_ERRORS as exc:
                # Left for sweep_orphans
                logger.warning("Could not remove chunk %s/%s: %s", physical_name, key, exc)
        return removed

    async def _list_chunk_keys(self, physical_name: str, prefix: str = None) -> list:
        def collect():
            return [
                obj.object_name
                for obj in self.client.list_objects(
                    bucket_name=physical_name, prefix=prefix, recursive=True
                )
            ]
        return await asyncio.to_thread(collect)

    async def open_read_stream(self, bucket, file_id):
        record = await self.get(bucket, file_id)
        return self._iter_chunks(bucket, record.id, record.length, record.chunk_size)

    async def _iter_chunks(self, bucket: str, file_id: str, length: int, chunk_size: int):
        physical_name = self.physical_name(bucket)
        count = -(-length // chunk_size)
        for n in range(count):
            try:
                data = await asyncio.to_thread(self._read_object, physical_name, chunk_key(file_id, n))
            except MINIO_ERRORS as exc:
                logger.error("Reading chunk %d of %s/%s failed: %s", n, bucket, file_id, exc)
                raise StorageReadError(f"Missing chunk {n} of {file_id}") from exc
            expected = min(chunk_size, length - n * chunk_size)
            if len(data) != expected:
                raise StorageReadError(f"Chunk {n} of {file_id} has {len(data)} bytes, expected {expected}")
            yield data

    def _read_object(self, physical_name: str, key: str) -> bytes:
        response = self.client.get_object(bucket_name=physical_name, object_name=key)
        try:
            return response.read()
        finally:
            response.close()
            response.release_conn()

    async def delete(self, bucket, file_id):
        oid = parse_object_id(file_id)
        try:
            result = await self._files(bucket).delete_one({"_id": oid})
        except PyMongoError as exc:
            logger.error("Deleting %s/%s failed: %s", bucket, file_id, exc)
            raise StorageWriteError("Could not delete file") from exc
        if result.deleted_count == 0:
            raise NotFound()

        # The record is gone, so the object is no longer resolvable
        physical_name = self.physical_name(bucket)
        try:
            keys = await self._list_chunk_keys(physical_name, prefix=f"{file_id}/")
        except MINIO_ERRORS as exc:
            logger.warning("Could not list chunks of deleted %s/%s: %s", bucket, file_id, exc)
            return
        await self._remove_chunks(physical_name, keys)
        logger.info("Deleted %s from %s", file_id, bucket)

    async def sweep_orphans(self, bucket, older_than):
        cutoff = datetime.now(timezone.utc) - older_than
        physical_name = self.physical_name(bucket)
        grouped = {}
        for key in await self._list_chunk_keys(physical_name):
            file_id = key.split("/", 1)[0]
            if ObjectId.is_valid(file_id):
                grouped.setdefault(file_id, []).append(key)

        candidates = [
            ObjectId(file_id) for file_id in grouped
            if ObjectId(file_id).generation_time < cutoff
        ]
        if not candidates:
            return 0

        present = set(await self._files(bucket).distinct("_id", {"_id": {"$in": candidates}}))
        orphans = [oid for oid in candidates if oid not in present]
        for oid in orphans:
            removed = await self._remove_chunks(physical_name, grouped[str(oid)])
            logger.warning("Removed %d orphaned chunks of %s from %s", removed, oid, bucket)
        return len(orphans)

    async def ensure_indexes(self, bucket):
        await super().ensure_indexes(bucket)
        await self.ensure_bucket(bucket)
