"""
pftrack - histogram particle filter for single-object tracking

This package implements a sequential Monte Carlo (particle filter) tracker
that estimates the 2D screen position and extent of a moving object across
video frames, driven by a color histogram similarity score, together with
the generic distance and convolution toolkit it uses.

Algorithm Overview:
Each particle is a hypothesis about the object's region (centre x, y plus
width and height). Every frame the filter:
1. Moves all particles with a second-order autoregressive motion model
2. Extracts the color histogram of every particle's region
3. Scores it against the reference histogram (Hellinger or Bhattacharyya)
4. Normalizes the scores into weights
5. Resamples the cloud in proportion to the weights

Quick Start:
    >>> from pftrack import PositionParticleFilter, HistogramExtractor
    >>>
    >>> extractor = HistogramExtractor(num_bins=8)
    >>> reference = extractor.get_histogram(first_frame, (320, 240, 30, 30))
    >>>
    >>> pf = PositionParticleFilter(histogram_source=extractor, num_particles=200)
    >>> pf.init(reference, (320, 240, 30, 30))
    >>> for frame in video_frames:
    ...     x, y, width, height = pf.step(frame)

Distance toolkit:
    >>> from pftrack import distance, DistanceMetric
    >>> distance([0, 0], [3, 4], DistanceMetric.EUCLIDEAN)
    5.0

Classes:
    PositionParticleFilter: The particle filter engine
    ParticleFilterConfig: Configuration management with validation and presets
    HistogramExtractor: OpenCV-based histogram collaborator
    AutoRegressiveModel: Motion model
"""

from .autoregression import AutoRegressiveModel
from .config import ParticleFilterConfig
from .container import (
    adjust_away, adjust_toward, cauchy_product, circular_convolution, clean,
    integral, reverse_inner_product,
)
from .distance import DistanceMetric, distance
from .exceptions import (
    DimensionMismatchError, EmptyCollectionError, InvalidTransitionError,
    MetricNotImplementedError, PFTrackError, UnknownMetricError,
)
from .histogram_extractor import HistogramExtractor
from .particle import Particle, ParticleState
from .particle_filter import PositionParticleFilter, parallel_map
from .set_distance import SetDistanceMetric, distance_to_point, distance_to_set
from .state_machine import FilterPhase
from .types import Frame, Histogram, HistogramSource, Region

__version__ = "0.1.0"
__all__ = [
    'PositionParticleFilter', 'ParticleFilterConfig', 'HistogramExtractor',
    'AutoRegressiveModel', 'Particle', 'ParticleState', 'FilterPhase', 'parallel_map',
    'DistanceMetric', 'distance', 'SetDistanceMetric', 'distance_to_point', 'distance_to_set',
    'adjust_toward', 'adjust_away', 'circular_convolution', 'integral', 'cauchy_product',
    'reverse_inner_product', 'clean',
    'PFTrackError', 'DimensionMismatchError', 'UnknownMetricError',
    'MetricNotImplementedError', 'EmptyCollectionError', 'InvalidTransitionError',
    'Frame', 'Histogram', 'HistogramSource', 'Region',
]
