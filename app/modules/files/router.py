import asyncio
from fastapi import APIRouter, Query, Response
from app.core.errors import AuthError, NotFoundError, ObjectNotFoundError
from app.platform.adapters.storage_local import LocalFilesystemStorage
from app.platform.provider_registry import registry

router = APIRouter()

@router.get("/{key:path}")
async def download(key: str, expires: int = Query(...), signature: str = Query(...)):
    storage = registry.object_storage()
    if not isinstance(storage, LocalFilesystemStorage):
        raise NotFoundError("Not found")
    if not storage.verify(key, expires, signature):
        raise AuthError("Link expired or invalid")
    try:
        data = await asyncio.to_thread(storage.read_bytes, key)
    except ObjectNotFoundError as e:
        raise NotFoundError("Not found") from e
    media_type = "image/png" if key.endswith(".png") else "application/octet-stream"
    return Response(content=data, media_type=media_type)
