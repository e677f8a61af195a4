"""
Type definitions and constants for the pftrack particle filter.

This module provides the type aliases, protocols and constants shared by the
distance toolkit, the motion model and the particle filter engine.

The module defines:
- Type aliases for common data structures (Histogram, Frame, Region, etc.)
- The HistogramSource protocol implemented by histogram collaborators
- Constants for supported options and their defaults

Example Usage:
    >>> from pftrack.types import Region, RESAMPLING_SCHEMES
    >>>
    >>> def region_area(region: Region) -> float:
    ...     return region[2] * region[3]
    >>>
    >>> 'systematic' in RESAMPLING_SCHEMES
    True
"""

from typing import Optional, Protocol, Sequence, Tuple, Union
import numpy as np
from numpy.typing import NDArray

# Type aliases for common data structures

Number = Union[int, float]
"""A single real value in a sequence."""

NumericSequence = Union[Sequence[Number], NDArray[np.floating]]
"""
Type alias for the sequences compared by the distance toolkit.

Any ordered, sized collection of real numbers is accepted: lists, tuples and
1-D numpy arrays. Functions convert their inputs with ``np.asarray``.
"""

Frame = NDArray[np.uint8]
"""
A video frame: uint8 array of shape (H, W, 3) in OpenCV's BGR channel order.
"""

Histogram = NDArray[np.float32]
"""
A flat float32 color histogram summing to 1.

The HistogramExtractor produces num_bins^3 entries, one per joint bin of
the three channels. Only histograms with the same layout can be compared.
"""

Position = Tuple[float, float]
"""(x, y) coordinates of a particle or region centre."""

Size = Tuple[int, int]
"""(width, height) of a particle region in pixels."""

Region = Tuple[float, float, float, float]
"""
A rectangular frame region as (x, y, width, height).

(x, y) is the centre of the rectangle, not its top-left corner.
"""


class HistogramSource(Protocol):
    """
    Protocol for the histogram extraction collaborator.

    Implementations return a normalized histogram for a region of a frame,
    with the same bin layout as the reference histogram, or None when the
    region does not overlap the frame enough to be scored.
    """

    def get_histogram(self, frame: Frame, region: Region) -> Optional[Histogram]:
        ...


# Histogram color spaces, converted from BGR with cv2.cvtColor
COLOR_SPACES = ['HSV', 'RGB', 'LAB']
"""
Color spaces the histogram extractor can bin in.

HSV separates hue from brightness and is the usual choice for tracking
under changing light. LAB is perceptually uniform.
"""

DEFAULT_COLOR_SPACE = 'HSV'

# Histogram metrics accepted by the likelihood step
LIKELIHOOD_METRICS = ['bhattacharyya', 'hellinger']
"""Distance metrics the engine may use to score a candidate histogram."""

DEFAULT_LIKELIHOOD_METRIC = 'hellinger'

# Resampling
RESAMPLING_SCHEMES = ['multinomial', 'systematic', 'stratified', 'residual']
"""
Supported resampling schemes.

- 'multinomial': independent draws from the cumulative weight distribution
- 'systematic': one uniform offset, evenly spaced pointers (lowest variance)
- 'stratified': one uniform draw per stratum of width 1/N
- 'residual': deterministic copies of floor(N*w), multinomial for the rest
"""

DEFAULT_RESAMPLING_SCHEME = 'multinomial'

# Motion model
NOISE_DISTRIBUTIONS = ['gaussian', 'uniform']
"""Noise distributions for the autoregressive motion model."""

DEFAULT_AUTO_COEFFICIENTS = (0.8, 0.2)
"""
Default second-order autoregressive coefficients (a1, a2).

The next displacement is a1 * (last displacement) + a2 * (displacement
before that). See http://demonstrations.wolfram.com/AutoRegressiveSimulationSecondOrder/
"""

NORMALIZATION_TOLERANCE = 1e-4
"""Maximum deviation from 1.0 for a sequence to count as normalized."""

MIN_PATCH_SIZE = 2
"""Smallest patch side (pixels) the histogram extractor will score."""
