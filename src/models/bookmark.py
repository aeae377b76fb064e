"""Bookmark model for storing user bookmarks."""
from typing import TYPE_CHECKING

from sqlalchemy import JSON, ForeignKey, Index, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base, CreatedAtMixin

if TYPE_CHECKING:
    from models.user import User


class Bookmark(Base, CreatedAtMixin):
    """
    Bookmark model - stores a URL with derived metadata, tags and a manual sort position.

    For one user, positions always form the dense sequence 0..count-1. Positions
    are not covered by a unique constraint because range shifts pass through
    transient duplicates inside a single UPDATE; density is maintained by
    bookmark_service under a per-user row lock.
    """

    __tablename__ = "bookmarks"
    __table_args__ = (
        Index("ix_bookmarks_user_position", "user_id", "position"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
    )
    url: Mapped[str] = mapped_column(Text, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    favicon: Mapped[str] = mapped_column(Text, nullable=False, default="")
    summary: Mapped[str] = mapped_column(Text, nullable=False, default="")
    tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    position: Mapped[int] = mapped_column(nullable=False, default=0)

    user: Mapped["User"] = relationship(back_populates="bookmarks")
