"""Exception types raised by the reward engine."""
from typing import Any, Dict, Optional


class SchemeEngineError(Exception):
    """Base exception for scheme engine errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class RewardCalculationError(SchemeEngineError):
    """Raised when a reward calculation cannot be completed.

    This is the only exception type callers of ``calculate_reward`` see.
    The underlying failure, if any, is available as ``__cause__``.
    """
    pass


class InvalidCalculationInputError(RewardCalculationError):
    """Raised before evaluation when the request itself is unusable."""
    pass
