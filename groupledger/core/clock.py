from datetime import datetime, timezone


def to_utc_naive(dt: datetime) -> datetime:
    """
    The database stores naive DateTime values, always in UTC.
    - naive input is assumed to already be UTC
    - aware input is converted to UTC and its tzinfo dropped
    """
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
