from lessonbook.models.lesson import Lesson
from lessonbook.models.semester import Semester
from lessonbook.models.subject import Subject
from lessonbook.models.year import Year

__all__ = ["Year", "Semester", "Subject", "Lesson"]
