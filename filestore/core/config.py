from pydantic_settings import BaseSettings
from typing import Literal

class Settings(BaseSettings):
    MONGO_URI: str = "mongodb://localhost:27017"
    MONGO_DB_NAME: str = "filestore"
    MONGO_TLS: bool = False

    STORAGE_BACKEND: Literal["gridfs", "minio", "memory"] = "gridfs"
    CHUNK_SIZE_BYTES: int = 255 * 1024  # GridFS default

    MINIO_ENDPOINT: str = "localhost:9000"
    MINIO_ACCESS_KEY: str = ""
    MINIO_SECRET_KEY: str = ""
    MINIO_SECURE: bool = True
    MINIO_BUCKET_PREFIX: str = ""

    UPLOADS_BUCKET: str = "uploads"
    UPLOADS_NAMING: Literal["random", "original"] = "random"
    UPLOADS_RESPONSE: Literal["redirect", "json"] = "redirect"

    SAFE_UPLOADS_BUCKET: str = "safe-uploads"
    SAFE_UPLOADS_PATH: str = "/safe"
    SAFE_UPLOADS_NAMING: Literal["random", "original"] = "original"

    ORPHAN_GRACE_HOURS: int = 24

    HOST: str = "0.0.0.0"
    PORT: int = 3000
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"


settings = Settings()
