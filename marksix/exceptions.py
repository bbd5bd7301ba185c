"""
Error types raised by the MarkSix engine.
"""


class MarkSixError(Exception):
    """Base class for engine errors."""


class InsufficientDataError(MarkSixError):
    """Raised when an operation receives fewer periods or numbers than it needs."""

    def __init__(self, message: str, required: int = 0, available: int = 0):
        super().__init__(message)
        self.required = required
        self.available = available


class InvalidCandidateError(MarkSixError):
    """Raised when a selection strategy produces fewer numbers than a full bet."""

    def __init__(self, strategy: str, size: int):
        super().__init__(f"Strategy '{strategy}' produced {size} numbers")
        self.strategy = strategy
        self.size = size


class NonConsecutivePeriodError(MarkSixError):
    """Raised when a training window does not end right before its target period."""

    def __init__(self, training_period: str, target_period: str):
        super().__init__(f"Period {target_period} does not follow {training_period}")
        self.training_period = training_period
        self.target_period = target_period


class InvalidPeriodIdentifierError(MarkSixError, ValueError):
    """Raised when a period identifier matches none of the supported formats."""
