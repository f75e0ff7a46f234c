"""User model."""
from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, new_id


class User(Base):
    """Customer or driver account mirrored from the identity service."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    full_name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone_number: Mapped[str | None] = mapped_column(String(32), nullable=True)

    @property
    def first_name(self) -> str:
        parts = self.full_name.split()
        return parts[0] if parts else "Customer"

    @property
    def last_name(self) -> str:
        parts = self.full_name.split()
        return parts[-1] if parts else ""
