"""System Clock — the production Clock: timezone-aware UTC now()."""

from datetime import datetime, timezone


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc)
