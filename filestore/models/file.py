from pydantic import BaseModel, Field, BeforeValidator
from typing import Annotated
from datetime import datetime

# Helper for ObjectId
PyObjectId = Annotated[str, BeforeValidator(str)]

IMAGE_CONTENT_TYPES = frozenset({"image/jpeg", "image/png"})
DEFAULT_CONTENT_TYPE = "application/octet-stream"

class FileRecord(BaseModel):
    id: PyObjectId
    filename: str
    content_type: str = Field(alias="contentType")
    length: int
    chunk_size: int = Field(alias="chunkSize")
    uploaded_at: datetime = Field(alias="uploadedAt")
    bucket: str

    class Config:
        populate_by_name = True

    @property
    def is_image(self) -> bool:
        return self.content_type in IMAGE_CONTENT_TYPES

    @classmethod
    def from_document(cls, doc: dict, bucket: str) -> "FileRecord":
        # Files written by older deployments carry contentType at the top level
        content_type = doc.get("contentType") or (doc.get("metadata") or {}).get("contentType")
        return cls(
            id=doc["_id"],
            filename=doc.get("filename") or "",
            content_type=content_type or DEFAULT_CONTENT_TYPE,
            length=doc["length"],
            chunk_size=doc["chunkSize"],
            uploaded_at=doc["uploadDate"],
            bucket=bucket,
        )
