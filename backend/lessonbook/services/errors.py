"""Domain errors raised by services and mapped to HTTP responses by routers."""


class LessonbookError(Exception):
    pass


class NotFoundError(LessonbookError):
    pass


class NameTakenError(LessonbookError):
    """A year with this name already exists."""


class InvalidParentError(LessonbookError):
    pass


class InvalidPathError(LessonbookError):
    pass


class StoreError(LessonbookError):
    """Write failure in the store other than a known constraint."""


class ArchiveError(LessonbookError):
    """The archive itself is unreadable or has no usable manifest."""
