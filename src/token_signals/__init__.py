"""
Token Signals

Turns blockchain transaction webhooks into screened token signals. Every
referenced token is processed at most once, market-data calls are rate limited
behind a global cooldown, and signalled tokens are tracked for market-cap
milestones.
"""

__version__ = "0.1.0"
__author__ = "Token Signals Team"

from .core.models import ValidationResult
from .core.errors import SignalError, ValidationClientError, RateLimitedError
from .data.connector import DexScreenerConnector
from .signal.orchestrator import SignalOrchestrator
from .tracking.progress import ProgressTracker

__all__ = [
    "ValidationResult",
    "SignalError",
    "ValidationClientError",
    "RateLimitedError",
    "DexScreenerConnector",
    "SignalOrchestrator",
    "ProgressTracker",
]
