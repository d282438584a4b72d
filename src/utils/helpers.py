"""
Helper Utilities
Common helper functions
"""

from typing import Any, Dict, Optional
from datetime import datetime, date, time


def format_datetime(dt: datetime, format_str: str = "%d %b %Y %H:%M") -> str:
    """Datetime as shown in emails and exports, e.g. 02 Mar 2026 09:00"""
    return dt.strftime(format_str)


def humanize(value: str) -> str:
    """Turn an enum value like gm_approved into "gm approved" """
    if value is None:
        return ""
    value = getattr(value, "value", value)
    return str(value).replace("_", " ").replace("-", " ")


def parse_date_range(start_date: Optional[date], end_date: Optional[date]):
    """
    Convert an inclusive date range into datetime bounds

    Returns:
        tuple: (start datetime or None, end-of-day datetime or None)
    """
    start = datetime.combine(start_date, time.min) if start_date else None
    end = datetime.combine(end_date, time.max) if end_date else None
    return start, end


def request_reason(payload: Dict[str, Any]) -> Optional[str]:
    """Best-effort free-text reason from a form payload"""
    for key in ("reason", "purpose", "main_duties"):
        if payload.get(key):
            return payload[key]
    return None


def truncate_string(text: str, max_length: int = 100, suffix: str = "...") -> str:
    """
    Truncate string to max length

    Args:
        text: Text to truncate
        max_length: Maximum length
        suffix: Suffix to add if truncated

    Returns:
        str: Truncated string
    """
    if len(text) <= max_length:
        return text
    return text[:max_length - len(suffix)] + suffix


def get_client_ip(request) -> str:
    """
    Get client IP address from request

    Args:
        request: FastAPI request object

    Returns:
        str: Client IP address
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()

    if request.client:
        return request.client.host

    return "unknown"
