"""Token screening criteria."""

from .criteria import CriteriaEngine

__all__ = ["CriteriaEngine"]
