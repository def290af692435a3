from pydantic import BaseModel


class UploadResponse(BaseModel):
    id: str
    name: str
    size: int
    mime: str
    view: str
    download: str
    ttl: int
    expires_at: int


class HealthResponse(BaseModel):
    status: str
    environment: str
    objects: int
    resident_bytes: int
