from pydantic import BaseModel
from filestore.models.file import FileRecord

class UploadResponse(BaseModel):
    file: FileRecord

class FileDeleteResponse(BaseModel):
    status: str
    id: str

class ErrorResponse(BaseModel):
    err: str
