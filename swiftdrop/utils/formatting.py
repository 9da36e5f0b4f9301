"""
Helper functions for formatting data into human-readable strings.
"""

from typing import Optional


def format_size(bytes_size: float) -> str:
    """Formats bytes into a human-readable size string (e.g., '145.3 MB')."""
    if bytes_size <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB", "TB"]
    i = 0
    while bytes_size >= 1024 and i < len(units) - 1:
        bytes_size /= 1024
        i += 1
    if i == 0:
        return f"{int(bytes_size)} B"
    return f"{bytes_size:.1f} {units[i]}"


def format_speed(bytes_per_second: Optional[float]) -> str:
    """Formats a transfer rate, e.g. '1.2 MB/s'."""
    if not bytes_per_second or bytes_per_second <= 0:
        return "0 B/s"
    return f"{format_size(bytes_per_second)}/s"


def format_duration(seconds: float) -> str:
    """
    Formats a duration in seconds into a human-readable string (e.g., '2h 34m 12s').
    """
    s = int(round(seconds))
    hours, remainder = divmod(s, 3600)
    minutes, secs = divmod(remainder, 60)
    parts = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    if secs > 0 or not parts:
        parts.append(f"{secs}s")
    return " ".join(parts)


def format_eta(seconds: Optional[float]) -> str:
    """Like format_duration, but an unknown estimate reads 'unknown'."""
    if seconds is None:
        return "unknown"
    return format_duration(max(seconds, 0.0))


def file_category(mime_type: str) -> str:
    """Coarse, display-only grouping of a MIME type."""
    mime_type = mime_type.lower()
    if mime_type.startswith("image/"):
        return "Image"
    if mime_type.startswith("video/"):
        return "Video"
    if mime_type.startswith("audio/"):
        return "Audio"
    if "sheet" in mime_type or "excel" in mime_type:
        return "Spreadsheet"
    if mime_type == "application/pdf" or "word" in mime_type or "document" in mime_type:
        return "Document"
    if "zip" in mime_type or "archive" in mime_type:
        return "Archive"
    return "File"
