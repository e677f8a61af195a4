"""
Autoregressive motion model for particle propagation.

The model predicts the next displacement of a particle as a linear
combination of its most recent displacements, plus noise that keeps the
particle cloud diverse. With the default second-order model:

    x(t+1) = x(t) + a1 * (x(t) - x(t-1)) + a2 * (x(t-1) - x(t-2)) + noise

The model is applied independently to the x and y coordinates.
See http://demonstrations.wolfram.com/AutoRegressiveSimulationSecondOrder/
"""

from typing import Sequence, Tuple

import numpy as np
from numpy.typing import NDArray

from .container import reverse_inner_product
from .types import DEFAULT_AUTO_COEFFICIENTS, NOISE_DISTRIBUTIONS

# Number of standard deviations used as the Gaussian step bound
GAUSSIAN_BOUND_SIGMAS = 6.0


class AutoRegressiveModel:
    """
    Autoregressive predictor for one coordinate of a particle.

    The order of the model is the number of coefficients. A particle keeps
    as many previous positions as the model has coefficients (most recent
    first), which yields exactly that many displacements.
    """

    def __init__(self, coefficients: Sequence[float] = DEFAULT_AUTO_COEFFICIENTS,
                 noise_scale: float = 5.0, noise_distribution: str = 'gaussian') -> None:
        """
        Initialize the motion model.

        Args:
            coefficients: Weights (a1, a2, ...) of the most recent displacements
            noise_scale: Standard deviation (gaussian) or half-width (uniform) of the noise
            noise_distribution: 'gaussian' or 'uniform'

        Raises:
            ValueError: If parameters are invalid
        """
        if len(coefficients) == 0:
            raise ValueError("At least one autoregressive coefficient is required")

        if noise_scale < 0:
            raise ValueError(f"Noise scale must be non-negative, got {noise_scale}")

        noise_distribution = noise_distribution.lower()
        if noise_distribution not in NOISE_DISTRIBUTIONS:
            raise ValueError(f"Unsupported noise distribution: {noise_distribution}. "
                             f"Use one of: {NOISE_DISTRIBUTIONS}")

        self.coefficients = np.asarray(coefficients, dtype=np.float64)
        self.noise_scale = float(noise_scale)
        self.noise_distribution = noise_distribution

    @property
    def order(self) -> int:
        return int(self.coefficients.size)

    def displacements(self, current: float, history: Sequence[float]) -> NDArray[np.float64]:
        """
        Displacements of a coordinate in chronological order (oldest first).

        Args:
            current: Current coordinate
            history: Previous coordinates, most recent first, length == order

        Raises:
            ValueError: If the history length does not match the model order
        """
        if len(history) != self.order:
            raise ValueError(f"History must hold {self.order} positions, got {len(history)}")
        positions = np.asarray((current,) + tuple(history), dtype=np.float64)
        # positions is newest first, so reverse to get oldest first
        return (positions[:-1] - positions[1:])[::-1]

    def predict_displacement(self, current: float, history: Sequence[float]) -> float:
        """Deterministic part of the next displacement."""
        # coefficients are newest first, displacements oldest first
        return reverse_inner_product(self.coefficients, self.displacements(current, history))

    def predict(self, current: float, history: Sequence[float], noise: float = 0.0) -> float:
        """
        Predict the next coordinate.

        Args:
            current: Current coordinate
            history: Previous coordinates, most recent first
            noise: Noise sample to add to the prediction

        Returns:
            float: The new coordinate
        """
        return float(current + self.predict_displacement(current, history) + noise)

    def sample_noise(self, rng: np.random.Generator, count: int) -> NDArray[np.float64]:
        """
        Draw noise for count particles, one column per coordinate.

        Returns:
            NDArray[np.float64]: Array of shape (count, 2)
        """
        if self.noise_scale == 0.0:
            return np.zeros((count, 2))
        if self.noise_distribution == 'uniform':
            return rng.uniform(-self.noise_scale, self.noise_scale, size=(count, 2))
        return rng.normal(0.0, self.noise_scale, size=(count, 2))

    def noise_bound(self) -> float:
        """Largest noise magnitude per coordinate (exact for uniform noise)."""
        if self.noise_distribution == 'uniform':
            return self.noise_scale
        return GAUSSIAN_BOUND_SIGMAS * self.noise_scale

    def max_step(self, current: float, history: Sequence[float]) -> float:
        """Bound on the distance a coordinate can move in one prediction."""
        return abs(self.predict_displacement(current, history)) + self.noise_bound()

    @staticmethod
    def shift_history(current: float, history: Sequence[float]) -> Tuple[float, ...]:
        """History after a step: the current position becomes the most recent one."""
        return (float(current),) + tuple(history)[:-1]

    def __repr__(self) -> str:
        return (f"AutoRegressiveModel(coefficients={self.coefficients.tolist()}, "
                f"noise_scale={self.noise_scale}, noise_distribution='{self.noise_distribution}')")
