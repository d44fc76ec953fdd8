"""In-memory caches."""

from .dedup import DedupCache
from .volume import VolumeCache, VolumeCacheEntry

__all__ = ["DedupCache", "VolumeCache", "VolumeCacheEntry"]
