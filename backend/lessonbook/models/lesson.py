from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lessonbook.database import Base, utcnow


class Lesson(Base):
    """A photo (leaf) or a folder (container) inside a subject.

    Nesting lives in ``image_path``: a direct child of container ``N`` stores
    ``FC:N:<real path>`` (leaf) or ``FC:N:__folder__`` (container). See
    ``lessonbook.services.folder_keys``.
    """

    __tablename__ = "lessons"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    subject_id: Mapped[int] = mapped_column(
        ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    image_path: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_container: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow)

    subject = relationship("Subject", back_populates="lessons")
