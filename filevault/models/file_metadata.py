from sqlalchemy import ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from filevault.core.database import Base
from filevault.models.base import new_id

class FileMetadata(Base):
    __tablename__ = "file_metadata"
    __table_args__ = (
        UniqueConstraint("file_id", "key", name="uq_file_metadata_file_key"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    file_id: Mapped[str] = mapped_column(ForeignKey("files.id", ondelete="CASCADE"), nullable=False, index=True)
    key: Mapped[str] = mapped_column(String, nullable=False)
    value: Mapped[str] = mapped_column(Text, nullable=False)

    file: Mapped["File"] = relationship("File", back_populates="metadata_entries")
