"""
Module: procurement_kernel.models.user
Responsibility: Minimal staff user record.  Authentication lives outside the
    kernel; actors are passed in as ``actor_id`` and this table only supplies
    the display name shown next to "created by" and "conducted by".
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from procurement_kernel.db.base import Base


class User(Base):
    """Staff member who creates orders or receives goods."""

    __tablename__ = "users"

    __table_args__ = (
        UniqueConstraint("username", name="uq_user_username"),
    )

    username: Mapped[str] = mapped_column(String(100), nullable=False)

    full_name: Mapped[str] = mapped_column(String(255), nullable=False)

    def __repr__(self) -> str:
        return f"<User {self.username}>"
