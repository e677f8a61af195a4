"""
Distance metrics between equal-length numeric sequences.

This module provides the DistanceMetric enumeration and the distance()
dispatcher used to compare histograms, positions and other sequences.
The function works on any ordered sequence of real values (lists, tuples,
numpy arrays); it is not tied to one container type.

Supported metrics, over sequences x and y of length n:
    DOTPRODUCT:                 sum_i { x_i*y_i }
    EUCLIDEAN:                  sqrt (sum_i { (x_i-y_i)^2 } )
    BHATTACHARYYA:              -ln (sum_i { sqrt (x_i*y_i) } )
    HELLINGER:                  sqrt (sum_i { (sqrt(x_i)-sqrt(y_i))^2 } ) * 1/sqrt(2)
    CHEBYSHEV:                  max_i abs(x_i-y_i)
    MANHATTAN:                  sum_i { abs(x_i-y_i) }
    BHATTACHARYYA_COEFFICIENT:  sum_i { sqrt (x_i*y_i) }
    SQUARED_HELLINGER:          sqrt (1 - sum_i { sqrt (x_i*y_i) } ), normalized inputs only

Only metrics that need no additional information are defined. The Mahalanobis
distance, for example, would need the covariance between the variables.
"""

import logging
from enum import Enum
from typing import Union

import numpy as np
from numpy.typing import NDArray

from .exceptions import DimensionMismatchError, UnknownMetricError
from .types import NORMALIZATION_TOLERANCE, Number, NumericSequence

logger = logging.getLogger(__name__)


class DistanceMetric(Enum):
    """Point-wise distance metrics between two sequences."""

    EUCLIDEAN = 'euclidean'
    DOTPRODUCT = 'dotproduct'
    BHATTACHARYYA = 'bhattacharyya'
    HELLINGER = 'hellinger'
    MANHATTAN = 'manhattan'
    CHEBYSHEV = 'chebyshev'
    BHATTACHARYYA_COEFFICIENT = 'bhattacharyya_coefficient'
    SQUARED_HELLINGER = 'squared_hellinger'


MetricLike = Union[DistanceMetric, str]


# Element-wise kernels. Each one works on scalars and on numpy arrays.

def euclidean(x, y):
    """The p=2 norm term, element-wise squaring the difference."""
    return (x - y) * (x - y)


def taxicab(x, y):
    """The p=1 norm term, used for the Manhattan and Chebyshev distances."""
    return np.abs(x - y)


def bhattacharyya(x, y):
    """
    Bhattacharyya coefficient term sqrt(x*y).

    See: http://en.wikipedia.org/wiki/Bhattacharyya_distance
    """
    return np.sqrt(x * y)


def hellinger(x, y):
    """
    Hellinger term (sqrt(x) - sqrt(y))^2.

    See: http://en.wikipedia.org/wiki/Hellinger_distance
    """
    tmp = np.sqrt(x) - np.sqrt(y)
    return tmp * tmp


def resolve_metric(metric: MetricLike) -> DistanceMetric:
    """
    Turn a metric name or enum member into a DistanceMetric.

    Args:
        metric: DistanceMetric member or its case-insensitive name/value

    Returns:
        DistanceMetric: The matching enum member

    Raises:
        UnknownMetricError: If the metric is not recognized
    """
    if isinstance(metric, DistanceMetric):
        return metric

    if isinstance(metric, str):
        key = metric.strip().upper()
        if key in DistanceMetric.__members__:
            return DistanceMetric[key]

    logger.error(f"Unknown distance metric: {metric!r}")
    raise UnknownMetricError(metric)


def as_sequence(values: Union[NumericSequence, Number]) -> NDArray[np.float64]:
    """Convert a sequence (or a single value) into a flat float64 array."""
    return np.atleast_1d(np.asarray(values, dtype=np.float64)).ravel()


def is_normalized(values: NDArray[np.float64], tolerance: float = NORMALIZATION_TOLERANCE) -> bool:
    """Check whether a sequence sums to 1 within tolerance."""
    return abs(float(np.sum(values)) - 1.0) <= tolerance


def check_equal_length(seq1: NDArray[np.float64], seq2: NDArray[np.float64]) -> None:
    """
    Raise DimensionMismatchError unless both sequences have the same length.
    """
    if len(seq1) != len(seq2):
        logger.error(f"Container size unequal: {len(seq1)} vs {len(seq2)}")
        raise DimensionMismatchError(len(seq1), len(seq2))


def distance(seq1: NumericSequence, seq2: NumericSequence,
             metric: MetricLike = DistanceMetric.EUCLIDEAN) -> float:
    """
    Calculate the distance (similarity or dissimilarity) between two sequences.

    Args:
        seq1: First sequence of real values
        seq2: Second sequence of real values, same length as seq1
        metric: Distance metric to use, as enum member or name

    Returns:
        float: The distance between the two sequences. BHATTACHARYYA returns
            inf for sequences without overlap.

    Raises:
        DimensionMismatchError: If the sequences have different lengths
        UnknownMetricError: If the metric is not recognized

    Example:
        >>> distance([0, 0], [3, 4], DistanceMetric.EUCLIDEAN)
        5.0
    """
    x = as_sequence(seq1)
    y = as_sequence(seq2)
    check_equal_length(x, y)
    metric = resolve_metric(metric)

    if metric is DistanceMetric.DOTPRODUCT:
        return float(np.dot(x, y))
    elif metric is DistanceMetric.EUCLIDEAN:
        return float(np.sqrt(np.sum(euclidean(x, y))))
    elif metric is DistanceMetric.BHATTACHARYYA:
        coefficient = np.sum(bhattacharyya(x, y))
        with np.errstate(divide='ignore'):
            return float(-np.log(coefficient))
    elif metric is DistanceMetric.HELLINGER:
        return float(np.sqrt(np.sum(hellinger(x, y))) / np.sqrt(2.0))
    elif metric is DistanceMetric.CHEBYSHEV:
        if x.size == 0:
            return 0.0
        return float(np.max(taxicab(x, y)))
    elif metric is DistanceMetric.MANHATTAN:
        return float(np.sum(taxicab(x, y)))
    elif metric is DistanceMetric.BHATTACHARYYA_COEFFICIENT:
        return float(np.sum(bhattacharyya(x, y)))
    elif metric is DistanceMetric.SQUARED_HELLINGER:
        return _squared_hellinger(x, y)

    # Unreachable unless the enum grows without a branch here
    raise UnknownMetricError(metric)


def _squared_hellinger(x: NDArray[np.float64], y: NDArray[np.float64]) -> float:
    """
    sqrt(1 - BC), which only agrees with the sum form when x and y sum to 1.

    For unnormalized input the sum form sqrt(1/2 * sum (sqrt(x)-sqrt(y))^2)
    is evaluated instead and a warning is logged.
    """
    if is_normalized(x) and is_normalized(y):
        coefficient = float(np.sum(bhattacharyya(x, y)))
        return float(np.sqrt(max(0.0, 1.0 - coefficient)))

    logger.warning(
        f"SQUARED_HELLINGER on unnormalized input (sums {np.sum(x):.4f}, {np.sum(y):.4f}); "
        f"using the element-wise form instead of sqrt(1 - BC)"
    )
    return float(np.sqrt(0.5 * np.sum(hellinger(x, y))))
