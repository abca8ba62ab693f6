import time
from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def utc_now_iso() -> str:
    return to_iso(utc_now())


def utc_iso_after(*, days: int, start: datetime | None = None) -> str:
    return to_iso((start or utc_now()) + timedelta(days=days))


def parse_iso(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def monotonic_ms() -> int:
    return int(time.monotonic() * 1000)
