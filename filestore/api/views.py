from pathlib import Path

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from filestore.core.database import get_store
from filestore.services.namespaces import BucketNamespace
from filestore.services.pipelines import FilePipeline
from filestore.services.storage import BlobStore

templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent.parent / "templates"))


def build_view_router(namespace: BucketNamespace) -> APIRouter:
    router = APIRouter()

    @router.get("/", response_class=HTMLResponse, include_in_schema=False)
    async def index(request: Request, store: BlobStore = Depends(get_store)):
        records = await FilePipeline(store, namespace).list_files()
        files = [
            {**record.model_dump(by_alias=True), "isImage": record.is_image}
            for record in records
        ]
        return templates.TemplateResponse(
            request,
            "index.html",
            {"files": files or False, "prefix": namespace.prefix},
        )

    return router
