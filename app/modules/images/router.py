import uuid
from fastapi import APIRouter, UploadFile, File, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.db import get_session
from app.core.errors import NotFoundError
from app.core.security import require_scopes, Principal
from app.modules.images.schemas import UploadOut, ImagesListOut, ImageFetchOut, DeleteOut, ImageOut
from app.modules.images.service import ImageService
from app.modules.images.validation import read_upload
from app.platform.provider_registry import registry

router = APIRouter()

def image_id_path(image_id: str) -> uuid.UUID:
    # malformed ids are just ids nobody owns
    try:
        return uuid.UUID(image_id)
    except ValueError:
        raise NotFoundError() from None

def svc(session: AsyncSession = Depends(get_session)) -> ImageService:
    return ImageService(session, registry.object_storage(), registry.transformer())

@router.post("", response_model=UploadOut)
async def upload_image(
    image: UploadFile | None = File(default=None),
    principal: Principal = Depends(require_scopes("images:write")),
    service: ImageService = Depends(svc),
):
    obj, remaining = await service.ingest(principal.user_id, await read_upload(image))
    return {"success": True, "image": ImageOut.model_validate(obj), "remaining": remaining}

@router.get("", response_model=ImagesListOut)
async def list_images(
    principal: Principal = Depends(require_scopes("images:read")),
    service: ImageService = Depends(svc),
):
    images, quota = await service.list(principal.user_id)
    return {"success": True, "images": images, "quota": quota}

@router.get("/{image_id}", response_model=ImageFetchOut)
async def get_image(
    principal: Principal = Depends(require_scopes("images:read")),
    image_id: uuid.UUID = Depends(image_id_path),
    service: ImageService = Depends(svc),
):
    return {"success": True, "image": await service.get(principal.user_id, image_id)}

@router.delete("/{image_id}", response_model=DeleteOut)
async def delete_image(
    principal: Principal = Depends(require_scopes("images:write")),
    image_id: uuid.UUID = Depends(image_id_path),
    service: ImageService = Depends(svc),
):
    await service.delete(principal.user_id, image_id)
    return {"success": True}
