"""
Utility helper functions
"""
import re
from datetime import datetime, timezone
from typing import List, Optional


def wrap_text(text: Optional[str], width: int = 96) -> List[str]:
    """
    Greedy word wrap. A line keeps taking words while ``line + " " + word``
    fits in ``width``; a single word longer than ``width`` gets its own line.
    """
    words = (text or "").split()
    lines: List[str] = []
    line = ""
    for word in words:
        candidate = f"{line} {word}".strip()
        if len(candidate) > width and line:
            lines.append(line)
            line = word
        else:
            line = candidate
    if line:
        lines.append(line)
    return lines


def truncate_text(text: str, length: int = 100) -> str:
    """Truncate text to specified length"""
    if len(text) <= length:
        return text
    return text[:length]


def safe_filename(name: str) -> str:
    """Keep a storage-key friendly version of an uploaded file name"""
    name = (name or "file").strip().replace(" ", "_")
    name = re.sub(r"[^\w.\-]", "", name)
    return name or "file"


def timestamp_millis(now: Optional[datetime] = None) -> int:
    """Epoch milliseconds. Naive datetimes are read as UTC."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return int(now.timestamp() * 1000)
