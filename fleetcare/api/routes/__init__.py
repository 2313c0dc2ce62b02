"""Route modules exposed by the API package."""

from . import maintenance, parts, ping, schedules

__all__ = ["maintenance", "parts", "ping", "schedules"]
