from fastapi import APIRouter
from app.modules.images.router import router as images_router
from app.modules.demo.router import router as demo_router
from app.modules.files.router import router as files_router

api_router = APIRouter()
api_router.include_router(images_router, prefix="/images", tags=["images"])
api_router.include_router(demo_router, prefix="/demo", tags=["demo"])
api_router.include_router(files_router, prefix="/files", tags=["files"])

@api_router.get("/health", tags=["health"])
async def health():
    return {"status": "ok"}
