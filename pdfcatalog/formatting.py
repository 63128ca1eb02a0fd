"""Human-readable formatting helpers shared by the services and the CLI."""

from datetime import datetime


def format_bytes(size: int | float | None) -> str:
    if not size:
        return "0 B"
    size_f = float(size)
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if size_f < 1024:
            return f"{size_f:.1f} {unit}"
        size_f /= 1024
    return f"{size_f:.1f} PB"


def format_date(unix_timestamp: float | None) -> str:
    if not unix_timestamp:
        return "unknown"
    return datetime.fromtimestamp(unix_timestamp).strftime("%Y-%m-%d")


def format_relative_time(unix_timestamp: float | None) -> str:
    if not unix_timestamp:
        return "unknown"

    now = datetime.now()
    then = datetime.fromtimestamp(unix_timestamp)
    delta = now - then

    if delta.days > 1:
        return f"{delta.days} days ago"
    if delta.days == 1:
        return "yesterday"
    if delta.seconds > 3600:
        hours = delta.seconds // 3600
        return f"{hours}h ago"
    if delta.seconds > 60:
        minutes = delta.seconds // 60
        return f"{minutes}m ago"
    return "just now"


def truncate(text: str, max_len: int) -> str:
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."
