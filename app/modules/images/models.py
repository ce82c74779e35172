from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, BigInteger
from app.core.base import Base, TimestampedOwnedMixin

STATUS_UPLOADING = "uploading"
STATUS_PROCESSING = "processing"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"

VALID_NEXT = {
    STATUS_UPLOADING: {STATUS_PROCESSING, STATUS_FAILED},
    STATUS_PROCESSING: {STATUS_COMPLETED, STATUS_FAILED},
    STATUS_COMPLETED: set(),
    STATUS_FAILED: set(),
}

class ImageAsset(Base, TimestampedOwnedMixin):
    __tablename__ = "images"

    original_filename: Mapped[str] = mapped_column(String(255))
    original_key: Mapped[str] = mapped_column(String(512))
    derived_key: Mapped[str | None] = mapped_column(String(512), nullable=True)
    delivery_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    status: Mapped[str] = mapped_column(String(16), default=STATUS_UPLOADING)  # uploading | processing | completed | failed
    content_type: Mapped[str] = mapped_column(String(128))
    size_bytes: Mapped[int] = mapped_column(BigInteger)
