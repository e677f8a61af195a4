"""
Phase tracking for the particle filter's per-frame cycle.

The filter cycles Init -> Transition -> Likelihood -> Resample -> Transition
-> ... The allowed calls are kept in an explicit table so illegal sequences
(Likelihood before Transition, Resample twice) are rejected.
"""

import logging
from enum import Enum
from typing import Dict, FrozenSet, Tuple

from .exceptions import InvalidTransitionError

logger = logging.getLogger(__name__)


class FilterPhase(Enum):
    UNINITIALIZED = 'uninitialized'
    INITIALIZED = 'initialized'
    TRANSITIONED = 'transitioned'
    WEIGHTED = 'weighted'
    RESAMPLED = 'resampled'
    CLOSED = 'closed'


_ACTIVE = frozenset({
    FilterPhase.INITIALIZED, FilterPhase.TRANSITIONED,
    FilterPhase.WEIGHTED, FilterPhase.RESAMPLED,
})

# operation -> (phases it may be called from, phase it leads to)
TRANSITIONS: Dict[str, Tuple[FrozenSet[FilterPhase], FilterPhase]] = {
    'init': (frozenset({FilterPhase.UNINITIALIZED}), FilterPhase.INITIALIZED),
    'transition': (frozenset({FilterPhase.INITIALIZED, FilterPhase.RESAMPLED}), FilterPhase.TRANSITIONED),
    'likelihood': (frozenset({FilterPhase.TRANSITIONED}), FilterPhase.WEIGHTED),
    'resample': (frozenset({FilterPhase.WEIGHTED}), FilterPhase.RESAMPLED),
    'reset': (_ACTIVE | {FilterPhase.UNINITIALIZED}, FilterPhase.UNINITIALIZED),
    'close': (_ACTIVE | {FilterPhase.UNINITIALIZED, FilterPhase.CLOSED}, FilterPhase.CLOSED),
}

# Read-only operations and the phases they are allowed in
QUERIES: Dict[str, FrozenSet[FilterPhase]] = {
    'estimate': _ACTIVE,
    'set_image': _ACTIVE | {FilterPhase.UNINITIALIZED},
}


class FilterStateMachine:
    """Tagged phase plus the transition table above."""

    def __init__(self) -> None:
        self.phase = FilterPhase.UNINITIALIZED

    def check(self, operation: str) -> FilterPhase:
        """
        Verify an operation is allowed in the current phase.

        Returns:
            FilterPhase: The phase the operation leads to (unchanged for queries)

        Raises:
            InvalidTransitionError: If the operation is not allowed now
            KeyError: If the operation is not in the table
        """
        allowed, target = self._lookup(operation)
        if self.phase not in allowed:
            logger.error(f"Rejected {operation}() in phase {self.phase.value}")
            raise InvalidTransitionError(operation, self.phase.value)
        return target

    def advance(self, operation: str) -> FilterPhase:
        """Move to the phase an operation leads to, after it has succeeded."""
        target = self.check(operation)
        logger.debug(f"{operation}(): {self.phase.value} -> {target.value}")
        self.phase = target
        return target

    def can(self, operation: str) -> bool:
        return self.phase in self._lookup(operation)[0]

    def _lookup(self, operation: str) -> Tuple[FrozenSet[FilterPhase], FilterPhase]:
        if operation in QUERIES:
            return QUERIES[operation], self.phase
        return TRANSITIONS[operation]
