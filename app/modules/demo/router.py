from fastapi import APIRouter, UploadFile, File, Depends, Request, Response
from app.modules.demo.admission import caller_key
from app.modules.demo.service import DemoService
from app.modules.images.schemas import DeleteOut, DemoUploadOut
from app.modules.images.validation import read_upload
from app.platform.provider_registry import registry

router = APIRouter()

def svc() -> DemoService:
    return DemoService(registry.object_storage(), registry.transformer(), registry.admission())

@router.post("", response_model=DemoUploadOut)
async def upload_demo(
    request: Request,
    response: Response,
    image: UploadFile | None = File(default=None),
    service: DemoService = Depends(svc),
):
    result = await service.ingest(caller_key(request), await read_upload(image))
    response.headers["X-RateLimit-Remaining"] = str(result.admission.remaining)
    return {"success": True, "imageId": result.image_id, "url": result.url, "storageKey": result.storage_key}

@router.delete("/{image_id}", response_model=DeleteOut)
async def delete_demo(image_id: str, service: DemoService = Depends(svc)):
    await service.delete(image_id)
    return {"success": True}
