"""
Distances between a point and a set, and between two sets of points.

Built on pftrack.distance: every comparison between two points goes through
distance() with the chosen point metric.

Set metrics:
    INFIMUM     smallest distance from the point to any member of the set
    SUPREMUM    largest distance from the point to any member of the set
    SUPINF      for every point of the first set take its INFIMUM distance to
                the second set, then keep the most remote one (directional)
    HAUSDORFF   max(SUPINF(A, B), SUPINF(B, A)), the longest distance an
                adversary can force you to travel from one set to the other

Example with a 1-D point metric:
    >>> distance_to_point([3, 6], 1, SetDistanceMetric.INFIMUM)
    2.0
    >>> distance_to_set([1, 3, 6, 7], [3, 6], SetDistanceMetric.SUPINF)
    2.0
    >>> distance_to_set([3, 6], [1, 3, 6, 7], SetDistanceMetric.SUPINF)
    0.0
"""

import logging
from enum import Enum
from typing import Iterable, List, Tuple, Union

import numpy as np
from numpy.typing import NDArray

from .distance import DistanceMetric, MetricLike, as_sequence, distance
from .exceptions import EmptyCollectionError, MetricNotImplementedError, UnknownMetricError
from .types import Number, NumericSequence

logger = logging.getLogger(__name__)

Point = Union[NumericSequence, Number]
PointSet = Iterable[Point]


class SetDistanceMetric(Enum):
    """Metrics between a point and a set, or between two sets."""

    INFIMUM = 'infimum'
    SUPREMUM = 'supremum'
    HAUSDORFF = 'hausdorff'
    SUPINF = 'supinf'


SetMetricLike = Union[SetDistanceMetric, str]


def resolve_set_metric(metric: SetMetricLike) -> SetDistanceMetric:
    """Turn a set metric name or enum member into a SetDistanceMetric."""
    if isinstance(metric, SetDistanceMetric):
        return metric
    if isinstance(metric, str) and metric.strip().upper() in SetDistanceMetric.__members__:
        return SetDistanceMetric[metric.strip().upper()]
    logger.error(f"Unknown set distance metric: {metric!r}")
    raise UnknownMetricError(metric)


def _as_points(point_set: PointSet) -> List[NDArray[np.float64]]:
    points = [as_sequence(p) for p in point_set]
    if not points:
        raise EmptyCollectionError("Set distance is undefined for an empty set")
    return points


def _extreme_point(points: List[NDArray[np.float64]], point: NDArray[np.float64],
                   point_metric: MetricLike, largest: bool) -> Tuple[int, float]:
    # Strict comparisons so the first member reaching the extremum wins
    best_index = 0
    best_distance = distance(points[0], point, point_metric)
    for index in range(1, len(points)):
        current = distance(points[index], point, point_metric)
        if (current > best_distance) if largest else (current < best_distance):
            best_index = index
            best_distance = current
    return best_index, best_distance


def closest_point(point_set: PointSet, point: Point,
                  point_metric: MetricLike = DistanceMetric.EUCLIDEAN) -> Tuple[int, float]:
    """
    Find the member of a set nearest to a point.

    Args:
        point_set: Iterable of points (scalars count as 1-D points)
        point: Reference point
        point_metric: Metric between two points

    Returns:
        Tuple[int, float]: Index of the first nearest member and its distance

    Raises:
        EmptyCollectionError: If the set is empty
    """
    return _extreme_point(_as_points(point_set), as_sequence(point), point_metric, largest=False)


def farthest_point(point_set: PointSet, point: Point,
                   point_metric: MetricLike = DistanceMetric.EUCLIDEAN) -> Tuple[int, float]:
    """Find the first member of a set farthest from a point, see closest_point()."""
    return _extreme_point(_as_points(point_set), as_sequence(point), point_metric, largest=True)


def distance_to_point(point_set: PointSet, point: Point,
                      set_metric: SetMetricLike = SetDistanceMetric.INFIMUM,
                      point_metric: MetricLike = DistanceMetric.EUCLIDEAN) -> float:
    """
    Calculate the distance between a point and a set of points.

    Args:
        point_set: Iterable of points, each the same length as point
        point: Reference point
        set_metric: INFIMUM or SUPREMUM
        point_metric: Metric used between two points

    Returns:
        float: Distance from the point to the set

    Raises:
        EmptyCollectionError: If the set is empty
        MetricNotImplementedError: For HAUSDORFF or SUPINF, which are set-to-set metrics
        DimensionMismatchError: If a member and the point differ in length
    """
    set_metric = resolve_set_metric(set_metric)

    if set_metric is SetDistanceMetric.INFIMUM:
        return closest_point(point_set, point, point_metric)[1]
    elif set_metric is SetDistanceMetric.SUPREMUM:
        return farthest_point(point_set, point, point_metric)[1]

    logger.error(f"Set metric {set_metric.name} is not defined between a point and a set")
    raise MetricNotImplementedError(set_metric, 'distance_to_point')


def distance_to_set(first_set: PointSet, second_set: PointSet,
                    set_metric: SetMetricLike = SetDistanceMetric.HAUSDORFF,
                    point_metric: MetricLike = DistanceMetric.EUCLIDEAN) -> float:
    """
    Calculate the distance between two sets of points.

    SUPINF is directional: with a 1-D point metric d([1,3,6,7], [3,6]) = 2
    while d([3,6], [1,3,6,7]) = 0. HAUSDORFF takes the larger of both
    directions and is therefore symmetric.

    Args:
        first_set: Iterable of points
        second_set: Iterable of points
        set_metric: SUPINF or HAUSDORFF
        point_metric: Metric used between two points

    Returns:
        float: Distance between the two sets

    Raises:
        EmptyCollectionError: If either set is empty
        MetricNotImplementedError: For INFIMUM or SUPREMUM, which are point-to-set metrics
    """
    set_metric = resolve_set_metric(set_metric)
    first_points = _as_points(first_set)
    second_points = _as_points(second_set)

    if set_metric is SetDistanceMetric.HAUSDORFF:
        dist_xy = _supinf(first_points, second_points, point_metric)
        dist_yx = _supinf(second_points, first_points, point_metric)
        return max(dist_xy, dist_yx)
    elif set_metric is SetDistanceMetric.SUPINF:
        return _supinf(first_points, second_points, point_metric)

    logger.error(f"Set metric {set_metric.name} is not defined between two sets")
    raise MetricNotImplementedError(set_metric, 'distance_to_set')


def _supinf(first_points: List[NDArray[np.float64]], second_points: List[NDArray[np.float64]],
            point_metric: MetricLike) -> float:
    remote = max(
        (_extreme_point(second_points, p, point_metric, largest=False)[1] for p in first_points)
    )
    return float(remote)
