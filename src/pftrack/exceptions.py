"""Custom exception classes for pftrack."""

from typing import Optional


class PFTrackError(Exception):
    """Base exception for all pftrack errors."""

    pass


class DimensionMismatchError(PFTrackError, ValueError):
    """Raised when two sequences compared element-wise differ in length."""

    def __init__(self, first_length: int, second_length: int, message: Optional[str] = None):
        self.first_length = first_length
        self.second_length = second_length
        if message is None:
            message = f"Container size unequal: {first_length} vs {second_length}"
        super().__init__(message)


class UnknownMetricError(PFTrackError, ValueError):
    """Raised when an unrecognized distance metric reaches a dispatcher."""

    def __init__(self, metric: object):
        self.metric = metric
        super().__init__(f"Unknown distance metric: {metric!r}")


class MetricNotImplementedError(PFTrackError, NotImplementedError):
    """Raised for set-distance metric combinations without a definition."""

    def __init__(self, metric: object, operation: str):
        self.metric = metric
        self.operation = operation
        super().__init__(f"Set metric {metric!r} is not implemented for {operation}")


class EmptyCollectionError(PFTrackError, ValueError):
    """Raised when a set distance or resampling step gets an empty collection."""

    pass


class InvalidTransitionError(PFTrackError):
    """Raised when a filter operation is called from a phase that does not allow it."""

    def __init__(self, operation: str, phase: object):
        self.operation = operation
        self.phase = phase
        super().__init__(f"Cannot call {operation}() while filter is {phase}")
