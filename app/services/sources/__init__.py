"""Source adapters for the follow-up sync."""

from .base import MalformedItemError, SourceAdapter, SourceError
from .github_source import TrackerAdapter
from .gmail_source import MailboxAdapter

__all__ = [
    "MailboxAdapter",
    "MalformedItemError",
    "SourceAdapter",
    "SourceError",
    "TrackerAdapter",
]
