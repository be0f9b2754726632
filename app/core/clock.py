from __future__ import annotations

import datetime


def now() -> int:
    """Current UTC time as integer epoch seconds (the unit every model stores)."""
    return int(datetime.datetime.now(datetime.UTC).timestamp())
