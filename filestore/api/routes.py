import unicodedata
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, UploadFile, status
from fastapi.responses import RedirectResponse, StreamingResponse

from filestore.core.database import get_store
from filestore.core.errors import NotFound
from filestore.models.file import FileRecord
from filestore.schemas.models import ErrorResponse, FileDeleteResponse, UploadResponse
from filestore.services.namespaces import BucketNamespace
from filestore.services.pipelines import FilePipeline
from filestore.services.storage import BlobStore

NOT_FOUND = {404: {"model": ErrorResponse}}

# Upload and delete redirects land on the listing view
LISTING_URL = "/"


def _quoted_string(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def content_disposition(filename: str) -> str:
    """
    Attachment header for a download of ``filename``.

    ASCII names are sent as a quoted ``filename``. Other names add an
    RFC 5987 ``filename*`` parameter after an ASCII approximation, which
    clients that do not understand ``filename*`` fall back to.
    """
    if "\r" in filename or "\n" in filename:
        raise ValueError(f"Line break in filename {filename!r}")
    if filename.isascii():
        return f"attachment; filename={_quoted_string(filename)}"
    fallback = unicodedata.normalize("NFKD", filename).encode("ascii", "ignore").decode("ascii")
    return (
        f"attachment; filename={_quoted_string(fallback or 'download')}; "
        f"filename*=utf-8''{quote(filename, safe='')}"
    )


def build_router(namespace: BucketNamespace) -> APIRouter:
    """Register the file routes of one namespace under its prefix."""
    router = APIRouter(prefix=namespace.prefix, tags=[namespace.bucket])

    def get_pipeline(store: BlobStore = Depends(get_store)) -> FilePipeline:
        return FilePipeline(store, namespace)

    def listing_redirect() -> RedirectResponse:
        return RedirectResponse(url=LISTING_URL, status_code=status.HTTP_303_SEE_OTHER)

    @router.post("/upload", responses={400: {"model": ErrorResponse}})
    async def upload_file(
        file: UploadFile | None = File(None),
        pipeline: FilePipeline = Depends(get_pipeline),
    ):
        record = await pipeline.upload(file)
        if namespace.response_mode == "redirect":
            return listing_redirect()
        return UploadResponse(file=record)

    @router.get("/files", response_model=list[FileRecord], responses=NOT_FOUND)
    async def list_files(pipeline: FilePipeline = Depends(get_pipeline)):
        files = await pipeline.list_files()
        if not files:
            raise NotFound("No files exist")
        return files

    @router.get("/files/by-name/{filename:path}", response_model=FileRecord, responses=NOT_FOUND)
    async def get_file_by_name(filename: str, pipeline: FilePipeline = Depends(get_pipeline)):
        """Newest file stored under this name"""
        return await pipeline.get_latest(filename)

    @router.get("/files/{file_id}", response_model=FileRecord, responses=NOT_FOUND)
    async def get_file(file_id: str, pipeline: FilePipeline = Depends(get_pipeline)):
        return await pipeline.get_file(file_id)

    @router.get("/image/{file_id}", responses=NOT_FOUND)
    async def show_image(file_id: str, pipeline: FilePipeline = Depends(get_pipeline)):
        record, stream = await pipeline.open_image(file_id)
        return StreamingResponse(
            stream,
            headers={
                "Content-Type": record.content_type,
                "Content-Length": str(record.length),
            },
        )

    @router.get("/download/{file_id}", responses=NOT_FOUND)
    async def download_file(file_id: str, pipeline: FilePipeline = Depends(get_pipeline)):
        record, stream = await pipeline.open_download(file_id)
        return StreamingResponse(
            stream,
            headers={
                "Content-Type": record.content_type,
                "Content-Length": str(record.length),
                "Content-Disposition": content_disposition(record.filename),
            },
        )

    @router.delete("/files/{file_id}", responses=NOT_FOUND)
    async def delete_file(file_id: str, pipeline: FilePipeline = Depends(get_pipeline)):
        await pipeline.delete(file_id)
        if namespace.response_mode == "redirect":
            return listing_redirect()
        return FileDeleteResponse(status="deleted", id=file_id)

    return router
