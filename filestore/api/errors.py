import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from filestore.core.errors import FileStoreError

logger = logging.getLogger(__name__)


async def file_store_error_handler(request: Request, exc: FileStoreError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"err": exc.message})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(FileStoreError, file_store_error_handler)
