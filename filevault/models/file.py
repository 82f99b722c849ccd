from datetime import datetime
from sqlalchemy import String, Integer, BigInteger, DateTime, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from filevault.core.database import Base
from filevault.models.base import new_id, utcnow
from typing import List, Optional

class File(Base):
    """A logical file: one (owner, name, virtual path) triple and a pointer to its active version."""

    __tablename__ = "files"
    __table_args__ = (
        UniqueConstraint("user_id", "original_name", "virtual_path", name="uq_files_owner_name_path"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    original_name: Mapped[str] = mapped_column(String, nullable=False)
    virtual_path: Mapped[str] = mapped_column(String, nullable=False, default="/")

    # Current pointer
    current_hash: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    current_version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_storage_key: Mapped[str] = mapped_column(String, nullable=False)

    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    size_bytes: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    mime_type: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    # Relationships
    versions: Mapped[List["FileVersion"]] = relationship(
        "FileVersion",
        back_populates="file",
        order_by="FileVersion.version",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    permissions: Mapped[List["FilePermission"]] = relationship(
        "FilePermission", back_populates="file", cascade="all, delete-orphan", passive_deletes=True
    )
    metadata_entries: Mapped[List["FileMetadata"]] = relationship(
        "FileMetadata", back_populates="file", cascade="all, delete-orphan", passive_deletes=True
    )
