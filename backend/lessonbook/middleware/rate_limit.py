"""Rate limiting middleware using slowapi."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from lessonbook.config import settings

limiter = Limiter(key_func=get_remote_address)

archive_limiter = limiter.limit(settings.archive_rate_limit)
