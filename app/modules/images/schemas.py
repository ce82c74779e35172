import uuid
from datetime import datetime
from pydantic import BaseModel, ConfigDict

class ImageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    owner_id: uuid.UUID
    original_filename: str
    original_key: str
    derived_key: str | None = None
    delivery_url: str | None = None
    status: str
    created_at: datetime
    updated_at: datetime

class QuotaOut(BaseModel):
    used: int
    limit: int
    remaining: int

class UploadOut(BaseModel):
    success: bool = True
    image: ImageOut
    remaining: int

class ImageFetchOut(BaseModel):
    success: bool = True
    image: ImageOut

class ImagesListOut(BaseModel):
    success: bool = True
    images: list[ImageOut]
    quota: QuotaOut

class DeleteOut(BaseModel):
    success: bool = True

class DemoUploadOut(BaseModel):
    success: bool = True
    imageId: uuid.UUID
    url: str
    storageKey: str
