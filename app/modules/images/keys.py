import re
import uuid

DEMO_PREFIX = "demo/"
DERIVED_EXT = "png"
DERIVED_CONTENT_TYPE = "image/png"

_DEMO_ID = re.compile(r"^[0-9a-f-]{36}$", re.IGNORECASE)

_EXT_BY_TYPE = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}

def extension_for(content_type: str) -> str:
    return _EXT_BY_TYPE.get(content_type.lower(), "bin")

def is_demo_id(value: str) -> bool:
    return bool(value) and bool(_DEMO_ID.match(value))

def demo_key(image_id: str | uuid.UUID) -> str:
    return f"{DEMO_PREFIX}{image_id}.{DERIVED_EXT}"

def owner_prefix(owner_id: uuid.UUID) -> str:
    return f"{owner_id}/"

def original_key(owner_id: uuid.UUID, image_id: uuid.UUID, content_type: str) -> str:
    return f"{owner_id}/original/{image_id}.{extension_for(content_type)}"

def derived_key(owner_id: uuid.UUID, image_id: uuid.UUID) -> str:
    return f"{owner_id}/processed/{image_id}.{DERIVED_EXT}"

def image_id_from_key(key: str) -> uuid.UUID | None:
    """Recover the image id from an owner-scoped key, or None if the key is foreign."""
    name = key.rsplit("/", 1)[-1]
    stem = name.split(".", 1)[0]
    try:
        return uuid.UUID(stem)
    except ValueError:
        return None

def owner_id_from_key(key: str) -> uuid.UUID | None:
    """The owner segment of an owner-scoped key; None for demo or foreign keys."""
    head, sep, _ = key.partition("/")
    if not sep:
        return None
    try:
        return uuid.UUID(head)
    except ValueError:
        return None
