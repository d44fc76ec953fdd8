"""Post-signal progress tracking."""

from .progress import ProgressTracker, TrackedToken

__all__ = ["ProgressTracker", "TrackedToken"]
