"""
Particle state and weighted particle for the position particle filter.

A ParticleState is one hypothesis about where the tracked object is and how
large it is. A Particle pairs a state with its weight in the current cloud.
"""

from dataclasses import dataclass, field, replace
from typing import Optional, Tuple

from .types import Histogram, Position, Region, Size


@dataclass(frozen=True)
class ParticleState:
    """
    Position, extent and motion history of one particle.

    States are immutable: the transition step builds a new state for every
    particle instead of changing the old one, so particles can be propagated
    independently of each other.

    Attributes:
        x: Centre x coordinate
        y: Centre y coordinate
        width: Region width in pixels (> 0)
        height: Region height in pixels (> 0)
        x_history: Previous x coordinates, most recent first
        y_history: Previous y coordinates, most recent first
        histogram: Histogram of the region at the last likelihood evaluation, if any
    """

    x: float
    y: float
    width: int
    height: int
    x_history: Tuple[float, ...] = ()
    y_history: Tuple[float, ...] = ()
    histogram: Optional[Histogram] = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Size dimensions must be positive, got {self.width}x{self.height}")
        if len(self.x_history) != len(self.y_history):
            raise ValueError("x and y histories must have the same length")

    @classmethod
    def at_rest(cls, x: float, y: float, width: int, height: int, order: int = 2) -> 'ParticleState':
        """Create a state whose history repeats the current position (zero velocity)."""
        return cls(x=float(x), y=float(y), width=int(width), height=int(height),
                   x_history=(float(x),) * order, y_history=(float(y),) * order)

    @property
    def position(self) -> Position:
        return (self.x, self.y)

    @property
    def size(self) -> Size:
        return (self.width, self.height)

    @property
    def region(self) -> Region:
        """(x, y, width, height) with (x, y) the centre."""
        return (self.x, self.y, float(self.width), float(self.height))

    def with_size(self, width: int, height: int) -> 'ParticleState':
        return replace(self, width=int(width), height=int(height))

    def with_histogram(self, histogram: Optional[Histogram]) -> 'ParticleState':
        return replace(self, histogram=histogram)


class Particle:
    """
    A weighted sample in the particle cloud.

    The weight is only meaningful relative to the other particles of the
    same cloud; after each likelihood and resample step the weights of the
    cloud sum to 1.
    """

    def __init__(self, state: ParticleState, weight: float = 0.0) -> None:
        """
        Initialize a particle.

        Args:
            state: Hypothesis about the object's position and size
            weight: Weight in [0, 1]

        Raises:
            ValueError: If weight is outside [0, 1]
        """
        if not (0.0 <= weight <= 1.0):
            raise ValueError(f"Particle weight must be in [0, 1], got {weight}")
        self.state = state
        self.weight = float(weight)

    def copy(self) -> 'Particle':
        # states are immutable, sharing them is safe
        return Particle(self.state, self.weight)

    def __str__(self) -> str:
        return (f"Particle(center=({self.state.x:.1f}, {self.state.y:.1f}), "
                f"size={self.state.size}, weight={self.weight:.4f})")

    def __repr__(self) -> str:
        return f"Particle(state={self.state!r}, weight={self.weight!r})"
