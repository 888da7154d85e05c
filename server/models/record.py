"""SQLModel table for catalog records."""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from sqlmodel import SQLModel, Field, Column, DateTime
from sqlalchemy import func


def _new_record_id() -> str:
    return uuid.uuid4().hex


class Record(SQLModel, table=True):
    """A media catalog entry.

    Everything except ``caption`` is a read-only input to caption
    generation. ``id`` is assigned by the store and never changes.
    """

    __tablename__ = "records"

    id: str = Field(default_factory=_new_record_id, primary_key=True, max_length=64)
    title: str = Field(default="", max_length=500)
    language: Optional[str] = Field(default=None, max_length=100)
    quality: Optional[str] = Field(default=None, max_length=50)
    format: Optional[str] = Field(default=None, max_length=50)
    codec: Optional[str] = Field(default=None, max_length=50)
    file_type: Optional[str] = Field(default=None, max_length=100)
    size: int = Field(default=0, ge=0)  # bytes
    caption: str = Field(default="", max_length=8000)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), server_default=func.now(), index=True)
    )
    updated_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), onupdate=func.now())
    )

    def to_dict(self) -> Dict[str, Any]:
        """JSON-serializable view used by the snapshot file."""
        return {
            "id": self.id,
            "title": self.title,
            "language": self.language,
            "quality": self.quality,
            "format": self.format,
            "codec": self.codec,
            "file_type": self.file_type,
            "size": self.size,
            "caption": self.caption,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
