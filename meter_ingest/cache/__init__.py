"""Reading cache - readings held between collection and insertion."""

from .reading_cache import DrainedReadings, PendingCacheEntry, ReadingCache

__all__ = ["DrainedReadings", "PendingCacheEntry", "ReadingCache"]
