from datetime import datetime

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lessonbook.database import Base, utcnow


class Year(Base):
    __tablename__ = "years"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow)

    semesters = relationship("Semester", back_populates="year", passive_deletes=True)
