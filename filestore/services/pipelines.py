import logging
from typing import AsyncIterator

from fastapi import UploadFile

from filestore.core.errors import MissingUpload, StorageReadError, UnsupportedContentType
from filestore.models.file import DEFAULT_CONTENT_TYPE, FileRecord
from filestore.services.namespaces import BucketNamespace
from filestore.services.storage import BlobStore

logger = logging.getLogger(__name__)


async def iter_upload(upload: UploadFile, size: int) -> AsyncIterator[bytes]:
    while True:
        data = await upload.read(size)
        if not data:
            break
        yield data


class FilePipeline:
    """
    Upload, retrieval and deletion of files in one bucket namespace.

    The blob store is handed in at construction; the pipeline holds no
    other state.
    """

    def __init__(self, store: BlobStore, namespace: BucketNamespace):
        self.store = store
        self.namespace = namespace

    @property
    def bucket(self) -> str:
        return self.namespace.bucket

    async def upload(self, upload: UploadFile | None) -> FileRecord:
        if upload is None or not upload.filename:
            raise MissingUpload()
        stored_name = self.namespace.stored_name(upload.filename)
        content_type = upload.content_type or DEFAULT_CONTENT_TYPE
        return await self.store.put(
            self.bucket,
            stored_name,
            content_type,
            iter_upload(upload, self.store.chunk_size),
        )

    async def list_files(self) -> list[FileRecord]:
        return await self.store.list(self.bucket)

    async def get_file(self, file_id: str) -> FileRecord:
        return await self.store.get(self.bucket, file_id)

    async def get_latest(self, filename: str) -> FileRecord:
        return await self.store.find_latest(self.bucket, filename)

    async def open_image(self, file_id: str) -> tuple[FileRecord, AsyncIterator[bytes]]:
        record = await self.store.get(self.bucket, file_id)
        if not record.is_image:
            raise UnsupportedContentType()
        return record, await self._open(record)

    async def open_download(self, file_id: str) -> tuple[FileRecord, AsyncIterator[bytes]]:
        record = await self.store.get(self.bucket, file_id)
        return record, await self._open(record)

    async def _open(self, record: FileRecord) -> AsyncIterator[bytes]:
        stream = await self.store.open_read_stream(self.bucket, record.id)
        return self._log_read_errors(stream, record)

    async def _log_read_errors(self, stream: AsyncIterator[bytes], record: FileRecord):
        # Headers are already sent once bytes flow, so failing here aborts the response
        try:
            async for data in stream:
                yield data
        except StorageReadError:
            logger.exception("Streaming %s/%s (%s) failed", self.bucket, record.id, record.filename)
            raise
        finally:
            # Releases the store cursor when the client goes away mid-download
            await stream.aclose()

    async def delete(self, file_id: str) -> None:
        await self.store.delete(self.bucket, file_id)
