from __future__ import annotations

import secrets
import string
import time
from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], int]

_TOKEN_ALPHABET = string.ascii_lowercase + string.digits


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def now_ms() -> int:
    return time.time_ns() // 1_000_000


def format_rfc3339(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def epoch_ms_to_rfc3339(value: int) -> str:
    return format_rfc3339(datetime.fromtimestamp(value / 1000, tz=timezone.utc))


def random_token(length: int = 6) -> str:
    return "".join(secrets.choice(_TOKEN_ALPHABET) for _ in range(length))


def is_blank(text: str | None) -> bool:
    return text is None or not text.strip()
