from datetime import datetime
from sqlalchemy import String, DateTime, Enum
from sqlalchemy.orm import Mapped, mapped_column
from filevault.core.database import Base
from filevault.models.base import new_id, utcnow
import enum

class Role(str, enum.Enum):
    USER = "user"
    ADMIN = "admin"

ROLE_ENUM = Enum(
    Role,
    name="role",
    native_enum=True,
    values_callable=lambda enum_cls: [e.value for e in enum_cls],
)

class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    email: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
    hashed_password: Mapped[str] = mapped_column(String, nullable=False)
    role: Mapped[Role] = mapped_column(ROLE_ENUM, default=Role.USER)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
