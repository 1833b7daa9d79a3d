from datetime import datetime

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lessonbook.database import Base, utcnow


class Semester(Base):
    __tablename__ = "semesters"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    year_id: Mapped[int] = mapped_column(
        ForeignKey("years.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow)

    year = relationship("Year", back_populates="semesters")
    subjects = relationship("Subject", back_populates="semester", passive_deletes=True)
