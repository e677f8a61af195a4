"""
Configuration classes for the position particle filter.

This module defines the configuration schema and default parameters
for PositionParticleFilter.
"""

from typing import Any, Dict, Optional, Tuple
from dataclasses import dataclass, field

from .types import (
    COLOR_SPACES, DEFAULT_AUTO_COEFFICIENTS, DEFAULT_COLOR_SPACE,
    DEFAULT_LIKELIHOOD_METRIC, DEFAULT_RESAMPLING_SCHEME, LIKELIHOOD_METRICS,
    NOISE_DISTRIBUTIONS, RESAMPLING_SCHEMES,
)


@dataclass
class ParticleFilterConfig:
    """Configuration schema for the particle filter with default parameters."""

    # Cloud size, fixed for the lifetime of a tracking session
    num_particles: int = 100

    # Autoregressive motion model
    auto_coefficients: Tuple[float, ...] = field(
        default_factory=lambda: tuple(DEFAULT_AUTO_COEFFICIENTS)
    )
    motion_noise: float = 5.0
    noise_distribution: str = 'gaussian'
    size_noise: float = 0.0     # std dev of width/height jitter, 0 keeps size fixed

    # Spread of the initial cloud around the initial region centre
    init_spread: float = 5.0

    # Likelihood: weight = exp(-d^2 / (2 sigma^2))
    likelihood_metric: str = DEFAULT_LIKELIHOOD_METRIC
    likelihood_sigma: float = 0.2

    # Resampling
    resampling_scheme: str = DEFAULT_RESAMPLING_SCHEME
    resample_threshold: Optional[float] = None  # normalized ESS; None resamples every frame

    # Histogram configuration
    histogram_bins: int = 8
    color_space: str = DEFAULT_COLOR_SPACE

    # Per-particle work
    num_workers: int = 1
    seed: Optional[int] = None

    @classmethod
    def create_default(cls) -> 'ParticleFilterConfig':
        """Create a configuration with all default values."""
        return cls()

    @classmethod
    def create_for_fast_motion(cls) -> 'ParticleFilterConfig':
        """Create a configuration for objects that move far between frames."""
        return cls(
            num_particles=500,
            auto_coefficients=(1.0, 0.0),
            motion_noise=15.0,
            init_spread=15.0,
            resampling_scheme='systematic',
            resample_threshold=0.5,
        )

    def validate(self) -> None:
        """
        Validate the configuration parameters.

        Raises:
            ValueError: If any configuration parameter is invalid
        """
        if self.num_particles <= 0:
            raise ValueError(f"Number of particles must be positive, got {self.num_particles}")

        if len(self.auto_coefficients) == 0:
            raise ValueError("At least one autoregressive coefficient is required")

        if self.motion_noise < 0:
            raise ValueError(f"Motion noise must be non-negative, got {self.motion_noise}")

        if self.noise_distribution not in NOISE_DISTRIBUTIONS:
            raise ValueError(f"Noise distribution must be one of {NOISE_DISTRIBUTIONS}, "
                             f"got {self.noise_distribution}")

        if self.size_noise < 0:
            raise ValueError(f"Size noise must be non-negative, got {self.size_noise}")

        if self.init_spread < 0:
            raise ValueError(f"Initial spread must be non-negative, got {self.init_spread}")

        if self.likelihood_metric.lower() not in LIKELIHOOD_METRICS:
            raise ValueError(f"Likelihood metric must be one of {LIKELIHOOD_METRICS}, "
                             f"got {self.likelihood_metric}")

        if self.likelihood_sigma <= 0:
            raise ValueError(f"Likelihood sigma must be positive, got {self.likelihood_sigma}")

        if self.resampling_scheme not in RESAMPLING_SCHEMES:
            raise ValueError(f"Resampling scheme must be one of {RESAMPLING_SCHEMES}, "
                             f"got {self.resampling_scheme}")

        if self.resample_threshold is not None and not (0 < self.resample_threshold <= 1):
            raise ValueError("Resample threshold must be in (0, 1]")

        if self.histogram_bins <= 0:
            raise ValueError(f"Histogram bins must be positive, got {self.histogram_bins}")

        if self.color_space not in COLOR_SPACES:
            raise ValueError(f"Color space must be HSV, RGB, or LAB, got {self.color_space}")

        if self.num_workers <= 0:
            raise ValueError(f"Number of workers must be positive, got {self.num_workers}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary format."""
        return {
            'num_particles': self.num_particles,
            'auto_coefficients': self.auto_coefficients,
            'motion_noise': self.motion_noise,
            'noise_distribution': self.noise_distribution,
            'size_noise': self.size_noise,
            'init_spread': self.init_spread,
            'likelihood_metric': self.likelihood_metric,
            'likelihood_sigma': self.likelihood_sigma,
            'resampling_scheme': self.resampling_scheme,
            'resample_threshold': self.resample_threshold,
            'histogram_bins': self.histogram_bins,
            'color_space': self.color_space,
            'num_workers': self.num_workers,
            'seed': self.seed
        }

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> 'ParticleFilterConfig':
        """
        Build a configuration from a dictionary, e.g. to_dict() plus overrides.

        Raises:
            ValueError: If the dictionary has unknown keys
        """
        unknown = set(values) - set(cls().to_dict())
        if unknown:
            raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")
        return cls(**values)
