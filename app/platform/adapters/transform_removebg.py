import logging
from dataclasses import dataclass

import httpx

from app.core.config import settings
from app.core.errors import TransformError
from app.modules.images.imaging import mirror_to_png
from app.platform.ports.transform import ImageTransformPort

log = logging.getLogger("transform.removebg")


@dataclass(frozen=True)
class RemoveBgRequest:
    image_bytes: bytes
    filename: str = "image.png"
    size: str = "auto"

    def files(self) -> dict:
        return {"image_file": (self.filename, self.image_bytes, "application/octet-stream")}

    def data(self) -> dict:
        return {"size": self.size}


@dataclass(frozen=True)
class RemoveBgResult:
    content: bytes
    content_type: str | None
    credits_charged: float | None
    width: int | None
    height: int | None

    @classmethod
    def from_response(cls, response: httpx.Response) -> "RemoveBgResult":
        def _num(name: str, kind):
            raw = response.headers.get(name)
            try:
                return kind(raw) if raw is not None else None
            except ValueError:
                return None

        return cls(
            content=response.content,
            content_type=response.headers.get("content-type"),
            credits_charged=_num("X-Credits-Charged", float),
            width=_num("X-Width", int),
            height=_num("X-Height", int),
        )


def _error_title(response: httpx.Response) -> str:
    try:
        errors = response.json().get("errors") or []
        return errors[0].get("title") or "Background removal failed"
    except (ValueError, AttributeError, IndexError):
        return "Background removal failed"


class RemoveBgTransformer(ImageTransformPort):
    """Background removal through the remove.bg HTTP API, then a left-right mirror."""

    def __init__(self, api_key: str | None = None, *, api_url: str | None = None, timeout: float | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self.api_key = api_key if api_key is not None else settings.REMOVEBG_API_KEY
        self.api_url = api_url or settings.REMOVEBG_API_URL
        self.timeout = timeout or settings.REMOVEBG_TIMEOUT_SECONDS
        self.transport = transport

    async def remove_background(self, request: RemoveBgRequest) -> RemoveBgResult:
        if not self.api_key:
            raise TransformError(detail="REMOVEBG_API_KEY is not configured")
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    self.api_url,
                    headers={"X-Api-Key": self.api_key},
                    files=request.files(),
                    data=request.data(),
                )
        except httpx.HTTPError as e:
            log.error(f"remove.bg request failed: {e}")
            raise TransformError(detail=f"remove.bg request failed: {e}") from e

        if not response.is_success:
            title = _error_title(response)
            log.error(f"remove.bg error status={response.status_code} title={title}")
            raise TransformError(title, detail=f"remove.bg returned {response.status_code}: {title}")

        result = RemoveBgResult.from_response(response)
        if not result.content:
            raise TransformError(detail="remove.bg returned an empty payload")
        log.debug(f"remove.bg ok bytes={len(result.content)} credits={result.credits_charged}")
        return result

    async def transform(self, image_bytes: bytes) -> bytes:
        result = await self.remove_background(RemoveBgRequest(image_bytes=image_bytes))
        return mirror_to_png(result.content)
