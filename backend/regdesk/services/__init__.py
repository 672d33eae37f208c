"""Services — async orchestration over AsyncSession (the imperative shell).

Every service takes a `clock` callable so tests can pin "now".
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
