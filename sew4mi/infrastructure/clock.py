"""Wall clock used outside of tests."""

from datetime import datetime

from sew4mi.domain.base import utc_now


class SystemClock:
    """Clock backed by the system time, always timezone-aware UTC."""

    def now(self) -> datetime:
        return utc_now()
