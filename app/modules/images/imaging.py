from io import BytesIO

from PIL import Image, UnidentifiedImageError

from app.core.errors import TransformError


def mirror_to_png(image_bytes: bytes) -> bytes:
    """
    Flip an image left-right and re-encode it as PNG.

    PNG is lossless and keeps the alpha channel, so the output has the same
    pixels as the input, mirrored. Palette images keep their transparency
    table through the round trip.
    """
    if not image_bytes:
        raise TransformError(detail="empty image payload")
    try:
        with Image.open(BytesIO(image_bytes)) as image:
            image.load()
            if image.mode not in ("1", "L", "LA", "P", "RGB", "RGBA", "I", "I;16"):
                image = image.convert("RGBA")
            flipped = image.transpose(Image.Transpose.FLIP_LEFT_RIGHT)
            if "transparency" in image.info:
                flipped.info["transparency"] = image.info["transparency"]
    except (UnidentifiedImageError, OSError) as e:
        raise TransformError(detail=f"undecodable image payload: {e}") from e

    out = BytesIO()
    save_kwargs = {}
    if "transparency" in flipped.info:
        save_kwargs["transparency"] = flipped.info["transparency"]
    flipped.save(out, format="PNG", **save_kwargs)
    return out.getvalue()
