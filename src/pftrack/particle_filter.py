"""
Position particle filter.

This module provides the PositionParticleFilter class, a sequential Monte
Carlo tracker for the 2D screen position and extent of one object. The
particle cloud is propagated with an autoregressive motion model, weighted
by comparing the color histogram of each particle's region with a reference
histogram, and resampled in proportion to those weights.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, TypeVar

import numpy as np
from numpy.typing import NDArray

from .autoregression import AutoRegressiveModel
from .config import ParticleFilterConfig
from .distance import distance, resolve_metric
from .histogram_extractor import HistogramExtractor, normalize_histogram
from .particle import Particle, ParticleState
from .resampling import RESAMPLERS, effective_sample_size
from .state_machine import FilterPhase, FilterStateMachine
from .types import Frame, Histogram, HistogramSource, Region, Size

logger = logging.getLogger(__name__)

T = TypeVar('T')
R = TypeVar('R')


def parallel_map(func: Callable[[T], R], items: Iterable[T], num_workers: int = 1) -> List[R]:
    """
    Apply func to every item, fanning out over a thread pool when num_workers > 1.

    Results keep the order of the items. The first exception raised by func
    propagates after the pool has shut down.
    """
    items = list(items)
    if num_workers <= 1 or len(items) <= 1:
        return [func(item) for item in items]
    with ThreadPoolExecutor(max_workers=num_workers) as executor:
        return list(executor.map(func, items))


class PositionParticleFilter:
    """
    Particle filter tracking a 2D screen position plus width, height and histogram.

    Each frame runs through a fixed cycle, enforced by a FilterStateMachine:

        init() -> transition() -> likelihood() -> resample() -> transition() -> ...

    set_image() provides the frame the likelihood step reads from, and
    estimate() returns the weight-averaged region at any point after init().
    Per-particle work in transition() and likelihood() has no dependency
    between particles and is spread over num_workers threads, each writing
    only its own particle slots.
    """

    def __init__(self, config: Optional[ParticleFilterConfig] = None,
                 histogram_source: Optional[HistogramSource] = None, **kwargs: Any) -> None:
        """
        Initialize the particle filter.

        Args:
            config: Configuration object. If None, uses the default configuration.
            histogram_source: Collaborator returning region histograms. If None, a
                HistogramExtractor with the configured bins and color space is used.
            **kwargs: Configuration values that override config, e.g.
                num_particles=200 or resampling_scheme='systematic'

        Example:
            >>> pf = PositionParticleFilter(num_particles=200, seed=7)
            >>> pf.set_image(first_frame)
            >>> pf.init(reference_histogram, (320, 240, 30, 30))
            >>> for frame in frames:
            ...     x, y, w, h = pf.step(frame)

        Raises:
            ValueError: If configuration parameters are invalid
        """
        if config is None:
            config = ParticleFilterConfig.create_default()

        config_dict = config.to_dict()
        config_dict.update(kwargs)
        self.config = ParticleFilterConfig.from_dict(config_dict)
        self.config.validate()

        self.num_particles = self.config.num_particles
        self.num_workers = self.config.num_workers
        self.likelihood_metric = resolve_metric(self.config.likelihood_metric)
        self.likelihood_sigma = self.config.likelihood_sigma
        self.resample_threshold = self.config.resample_threshold
        self.resampler = RESAMPLERS[self.config.resampling_scheme]

        self.motion_model = AutoRegressiveModel(
            coefficients=self.config.auto_coefficients,
            noise_scale=self.config.motion_noise,
            noise_distribution=self.config.noise_distribution
        )

        if histogram_source is None:
            histogram_source = HistogramExtractor(
                num_bins=self.config.histogram_bins,
                color_space=self.config.color_space
            )
        self.histogram_source = histogram_source

        self.rng = np.random.default_rng(self.config.seed)
        self.state_machine = FilterStateMachine()

        # Tracking session state, set by init()
        self._particles: List[Particle] = []
        self.reference_histogram: Optional[Histogram] = None
        self.image: Optional[Frame] = None

        # Statistics
        self.frame_count: int = 0
        self.resample_count: int = 0
        self.last_effective_sample_size: Optional[float] = None

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def phase(self) -> FilterPhase:
        return self.state_machine.phase

    @property
    def particles(self) -> Tuple[Particle, ...]:
        """Copies of the current particles, for rendering and diagnostics."""
        return tuple(particle.copy() for particle in self._particles)

    @property
    def weights(self) -> NDArray[np.float64]:
        return np.array([particle.weight for particle in self._particles], dtype=np.float64)

    def effective_sample_size(self) -> float:
        """1 / sum(w^2) of the current weights (N for uniform weights)."""
        return effective_sample_size(self.weights)

    def estimate(self) -> Region:
        """
        Weight-averaged region of the particle cloud.

        Returns:
            Region: (x, y, width, height) with (x, y) the estimated centre

        Raises:
            InvalidTransitionError: If the filter has not been initialized
        """
        self.state_machine.check('estimate')
        weights = self.weights
        states = [particle.state for particle in self._particles]
        x = float(np.dot(weights, [s.x for s in states]))
        y = float(np.dot(weights, [s.y for s in states]))
        width = float(np.dot(weights, [s.width for s in states]))
        height = float(np.dot(weights, [s.height for s in states]))
        return (x, y, width, height)

    # ------------------------------------------------------------------
    # Frame cycle
    # ------------------------------------------------------------------

    def set_image(self, frame: Frame) -> None:
        """
        Set the frame the next likelihood step reads histograms from.

        Raises:
            ValueError: If frame is not a 3-channel image
            InvalidTransitionError: If the filter is closed
        """
        self.state_machine.check('set_image')
        if frame is None or len(frame.shape) != 3 or frame.shape[2] != 3:
            raise ValueError("Frame must be a 3-channel image")
        self.image = frame

    def init(self, reference_histogram: Histogram, initial_region: Region,
             num_particles: Optional[int] = None) -> None:
        """
        Initialize the particle cloud around a region.

        Args:
            reference_histogram: Appearance histogram of the tracked object. It is
                copied and normalized; it does not change during the session.
            initial_region: (x, y, width, height) with (x, y) the centre
            num_particles: Cloud size, overrides the configured value

        Raises:
            ValueError: If the histogram or region is invalid
            InvalidTransitionError: If the filter is already initialized
        """
        self.state_machine.check('init')

        if reference_histogram is None or np.asarray(reference_histogram).size == 0:
            raise ValueError("Reference histogram cannot be None or empty")

        reference = np.asarray(reference_histogram, dtype=np.float32).ravel()
        if not np.all(np.isfinite(reference)) or np.any(reference < 0):
            raise ValueError("Reference histogram must be finite and non-negative")
        if float(np.sum(reference)) <= 0:
            raise ValueError("Reference histogram must have positive mass")
        # always a fresh array, the caller's histogram is never aliased
        reference = normalize_histogram(reference)

        if len(initial_region) != 4:
            raise ValueError("Initial region must be (x, y, width, height)")
        center_x, center_y, width, height = initial_region
        if width <= 0 or height <= 0:
            raise ValueError("Initial region dimensions must be positive")

        if num_particles is not None:
            if num_particles <= 0:
                raise ValueError(f"Number of particles must be positive, got {num_particles}")
            self.num_particles = num_particles

        n = self.num_particles
        offsets = self.rng.normal(0.0, self.config.init_spread, size=(n, 2))
        order = self.motion_model.order
        self._particles = [
            Particle(
                ParticleState.at_rest(center_x + offsets[i, 0], center_y + offsets[i, 1],
                                      max(1, int(round(width))), max(1, int(round(height))), order),
                weight=1.0 / n
            )
            for i in range(n)
        ]
        reference.setflags(write=False)
        self.reference_histogram = reference
        self.frame_count = 0
        self.resample_count = 0
        self.last_effective_sample_size = float(n)

        self.state_machine.advance('init')
        logger.info(f"Initialized {n} particles around ({center_x:.1f}, {center_y:.1f}), "
                    f"size {width}x{height}, {reference.size} histogram bins")

    def transition_state(self, state: ParticleState,
                         noise: Sequence[float] = (0.0, 0.0),
                         size_jitter: Sequence[float] = (0.0, 0.0)) -> ParticleState:
        """
        Autoregressive prediction of where a particle will be next.

        This is a pure function: the given state is not changed.

        Args:
            state: Current particle state
            noise: Position noise (dx, dy) added to the prediction
            size_jitter: Change (dw, dh) added to the size before rounding

        Returns:
            ParticleState: The predicted state, with no cached histogram
        """
        model = self.motion_model
        new_x = model.predict(state.x, state.x_history, noise[0])
        new_y = model.predict(state.y, state.y_history, noise[1])
        width = max(1, int(round(state.width + size_jitter[0])))
        height = max(1, int(round(state.height + size_jitter[1])))
        return ParticleState(
            x=new_x, y=new_y, width=width, height=height,
            x_history=model.shift_history(state.x, state.x_history),
            y_history=model.shift_history(state.y, state.y_history)
        )

    def do_transition(self, index: int, noise: Sequence[float] = (0.0, 0.0),
                      size_jitter: Sequence[float] = (0.0, 0.0)) -> None:
        """Replace the state in one particle slot by its predicted state."""
        particle = self._particles[index]
        particle.state = self.transition_state(particle.state, noise, size_jitter)

    def transition(self) -> None:
        """
        Move all particles following the motion model. Weights are untouched.

        Raises:
            InvalidTransitionError: If not called right after init() or resample()
        """
        self.state_machine.check('transition')
        n = len(self._particles)

        # all randomness is drawn here so the result does not depend on scheduling
        noise = self.motion_model.sample_noise(self.rng, n)
        if self.config.size_noise > 0:
            size_jitter = self.rng.normal(0.0, self.config.size_noise, size=(n, 2))
        else:
            size_jitter = np.zeros((n, 2))

        previous_states = [particle.state for particle in self._particles]
        try:
            parallel_map(lambda i: self.do_transition(i, noise[i], size_jitter[i]),
                         range(n), self.num_workers)
        except Exception as e:
            logger.error(f"Transition failed, keeping previous particle states: {e}")
            for particle, state in zip(self._particles, previous_states):
                particle.state = state
            raise

        self.frame_count += 1
        self.state_machine.advance('transition')
        logger.debug(f"Frame {self.frame_count}: transitioned {n} particles")

    def likelihood_of(self, state: ParticleState) -> float:
        """
        Likelihood that the tracked object is at the region of a particle state.

        The histogram of the state's region is matched against the reference
        histogram and the distance d is mapped to exp(-d^2 / (2 sigma^2)), so
        a smaller distance gives a higher likelihood. Regions outside the
        frame get likelihood 0.

        Args:
            state: Particle state defining the region (position, width, height)

        Returns:
            float: Likelihood in [0, 1]

        Raises:
            ValueError: If no image or reference histogram is set
            DimensionMismatchError: If the histogram layouts differ
        """
        return self._score(state)[0]

    def _score(self, state: ParticleState) -> Tuple[float, Optional[Histogram]]:
        if self.image is None:
            raise ValueError("No image set, call set_image() first")
        if self.reference_histogram is None:
            raise ValueError("No reference histogram, call init() first")

        histogram = self.histogram_source.get_histogram(self.image, state.region)
        if histogram is None:
            return 0.0, None

        d = distance(histogram, self.reference_histogram, self.likelihood_metric)
        weight = float(np.exp(-(d * d) / (2.0 * self.likelihood_sigma ** 2)))
        return weight, histogram

    def likelihood(self, region_size: Optional[Size] = None) -> None:
        """
        Weigh every particle by its likelihood and normalize the weights.

        Nothing is changed if scoring fails; the error propagates and the
        filter stays in the transitioned phase.

        Args:
            region_size: Optional (width, height) used for every particle's region
                instead of its own size

        Raises:
            InvalidTransitionError: If not called right after transition()
            ValueError: If no image is set or scores are not finite
        """
        self.state_machine.check('likelihood')

        if region_size is not None:
            width, height = region_size
            states = [particle.state.with_size(width, height) for particle in self._particles]
        else:
            states = [particle.state for particle in self._particles]

        try:
            scores = parallel_map(self._score, states, self.num_workers)
            weights = np.array([score[0] for score in scores], dtype=np.float64)
            if not np.all(np.isfinite(weights)):
                raise ValueError("Likelihood produced non-finite weights")
        except Exception as e:
            logger.error(f"Likelihood step failed on frame {self.frame_count}: {e}")
            raise

        total = float(np.sum(weights))
        if total <= 0:
            logger.warning(f"All particles have zero likelihood on frame {self.frame_count}, "
                           f"falling back to uniform weights")
            weights = np.full(len(states), 1.0 / len(states))
        else:
            weights /= total

        for particle, state, (_, histogram), weight in zip(self._particles, states, scores, weights):
            particle.state = state.with_histogram(histogram)
            particle.weight = float(weight)

        self.last_effective_sample_size = effective_sample_size(weights)
        self.state_machine.advance('likelihood')
        logger.debug(f"Frame {self.frame_count}: max weight {np.max(weights):.4f}, "
                     f"ESS {self.last_effective_sample_size:.1f}")

    def resample(self) -> bool:
        """
        Draw a new, equally weighted cloud in proportion to the current weights.

        When a resample threshold is configured and the normalized effective
        sample size is at or above it, the cloud is kept as is.

        Returns:
            bool: True if the cloud was resampled

        Raises:
            InvalidTransitionError: If not called right after likelihood()
            ValueError: If the weights are not normalized
        """
        self.state_machine.check('resample')
        n = len(self._particles)
        weights = self.weights

        if self.resample_threshold is not None:
            normalized_ess = effective_sample_size(weights) / n
            if normalized_ess >= self.resample_threshold:
                logger.debug(f"Skipping resample, normalized ESS {normalized_ess:.3f} "
                             f">= {self.resample_threshold}")
                self.state_machine.advance('resample')
                return False

        try:
            indices = self.resampler(weights, self.rng)
        except Exception as e:
            logger.error(f"Resampling failed on frame {self.frame_count}: {e}")
            raise

        self._particles = [Particle(self._particles[i].state, 1.0 / n) for i in indices]
        self.resample_count += 1
        self.state_machine.advance('resample')
        logger.debug(f"Frame {self.frame_count}: resampled {len(np.unique(indices))} distinct particles")
        return True

    def step(self, frame: Frame, region_size: Optional[Size] = None) -> Region:
        """
        Run one full frame: set_image, transition, likelihood and resample.

        Returns:
            Region: The estimate after the likelihood step, before resampling
        """
        self.set_image(frame)
        self.transition()
        self.likelihood(region_size)
        region = self.estimate()
        self.resample()
        return region

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Drop the tracking session so init() can be called again."""
        self.state_machine.advance('reset')
        # an init() override only lasts for its session
        self.num_particles = self.config.num_particles
        self._particles = []
        self.reference_histogram = None
        self.frame_count = 0
        self.resample_count = 0
        self.last_effective_sample_size = None

    def close(self) -> None:
        """End the tracking session. No operation is allowed afterwards."""
        self.state_machine.advance('close')
        self._particles = []
        self.reference_histogram = None
        self.image = None
        logger.info("Particle filter closed")

    def get_statistics(self) -> Dict[str, Any]:
        """
        Get statistics about the current particle cloud.

        Returns:
            Dict[str, Any]: Dictionary containing cloud statistics
        """
        weights = self.weights
        return {
            'phase': self.phase.value,
            'num_particles': len(self._particles),
            'frame_count': self.frame_count,
            'resample_count': self.resample_count,
            'max_weight': float(np.max(weights)) if weights.size else 0.0,
            'weight_std': float(np.std(weights)) if weights.size else 0.0,
            'effective_sample_size': self.last_effective_sample_size,
            'estimate': self.estimate() if self.state_machine.can('estimate') else None
        }

    def __repr__(self) -> str:
        return (f"PositionParticleFilter(num_particles={self.num_particles}, "
                f"phase={self.phase.value}, frame_count={self.frame_count})")
