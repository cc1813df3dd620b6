"""
Formatting utilities for display values.
"""
from typing import Optional


def format_display_name(subscription) -> str:
    """Name used in notifications; falls back to a generic label."""
    return getattr(subscription, "name", None) or "Subscription"


def format_bytes(value: Optional[float]) -> str:
    """Human-readable byte count using binary units, e.g. "1.5 GB"."""
    size = float(value or 0)
    for unit in ("B", "KB", "MB", "GB", "TB"):
        if abs(size) < 1024 or unit == "TB":
            if unit == "B":
                return f"{int(size)} B"
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} TB"
