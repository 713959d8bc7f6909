from datetime import datetime, timezone

def utc_now_iso() -> str:
    """Current UTC time as 2024-01-01T00:00:00.000Z"""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")
