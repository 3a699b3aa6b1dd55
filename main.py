import logging

import uvicorn
from fastapi import FastAPI, Response
from filestore.api.errors import register_exception_handlers
from filestore.api.middleware import MethodOverrideMiddleware
from filestore.api.routes import build_router
from filestore.api.views import build_view_router
from filestore.core.config import settings
from filestore.core.database import db
from filestore.core.logging_config import setup_logging
from filestore.services.backends import build_store
from filestore.services.minio_store import MinioBlobStore
from filestore.services.namespaces import build_namespaces

logger = logging.getLogger("filestore")

namespaces = build_namespaces(settings)
uploads = namespaces[0]

app = FastAPI(title="File Store")
app.add_middleware(MethodOverrideMiddleware)
register_exception_handlers(app)

@app.on_event("startup")
async def on_startup():
    setup_logging()
    if settings.STORAGE_BACKEND != "memory":
        db.connect()
    app.state.store = build_store(settings, db)
    if isinstance(app.state.store, MinioBlobStore):
        for namespace in namespaces:
            await app.state.store.ensure_bucket(namespace.bucket)
    logger.info("Serving buckets %s with the %s backend",
                [namespace.bucket for namespace in namespaces], settings.STORAGE_BACKEND)

@app.on_event("shutdown")
async def on_shutdown():
    db.close()

app.include_router(build_view_router(uploads), tags=["View"])
for namespace in namespaces:
    app.include_router(build_router(namespace))

@app.get("/health")
def health_check():
    return {"status": "ok"}

@app.get("/favicon.ico", include_in_schema=False)
async def favicon():
    return Response(status_code=204)

if __name__ == "__main__":
    uvicorn.run("main:app", host=settings.HOST, port=settings.PORT)
