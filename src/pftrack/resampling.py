"""
Resampling schemes for the particle filter.

Each scheme takes a normalized weight vector and returns N ancestor indices
drawn with replacement, with probability proportional to weight. The
systematic, stratified and residual schemes follow Roger Labbe's
"Kalman and Bayesian Filters in Python" (chapter 12, MIT License).
"""

from typing import Callable, Dict

import numpy as np
from numpy.typing import NDArray

from .exceptions import EmptyCollectionError
from .types import NORMALIZATION_TOLERANCE

Indices = NDArray[np.intp]


def validate_weights(weights: NDArray[np.float64]) -> NDArray[np.float64]:
    """
    Check that weights are a non-empty, non-negative, normalized vector.

    Raises:
        EmptyCollectionError: If there are no weights
        ValueError: If a weight is negative or not finite, or they do not sum to 1
    """
    weights = np.asarray(weights, dtype=np.float64).ravel()
    if weights.size == 0:
        raise EmptyCollectionError("Cannot resample an empty particle cloud")
    if not np.all(np.isfinite(weights)) or np.any(weights < 0):
        raise ValueError("Weights must be finite and non-negative")
    total = float(np.sum(weights))
    if abs(total - 1.0) > NORMALIZATION_TOLERANCE:
        raise ValueError(f"Weights must be normalized before resampling, sum is {total:.6f}")
    return weights


def _cumulative(weights: NDArray[np.float64]) -> NDArray[np.float64]:
    cumulative = np.cumsum(weights)
    # guard against round-off so every draw in [0, 1) lands on an index
    cumulative[-1] = 1.0
    return cumulative


def _draw(cumulative: NDArray[np.float64], pointers: NDArray[np.float64]) -> Indices:
    return np.searchsorted(cumulative, pointers, side='right').astype(np.intp)


def multinomial_resample(weights: NDArray[np.float64], rng: np.random.Generator) -> Indices:
    """Independent draws from the cumulative weight distribution."""
    weights = validate_weights(weights)
    return _draw(_cumulative(weights), rng.random(weights.size))


def systematic_resample(weights: NDArray[np.float64], rng: np.random.Generator) -> Indices:
    """One uniform offset, then N evenly spaced pointers."""
    weights = validate_weights(weights)
    n = weights.size
    pointers = (np.arange(n) + rng.random()) / n
    return _draw(_cumulative(weights), pointers)


def stratified_resample(weights: NDArray[np.float64], rng: np.random.Generator) -> Indices:
    """One uniform draw inside each of N strata of width 1/N."""
    weights = validate_weights(weights)
    n = weights.size
    pointers = (np.arange(n) + rng.random(n)) / n
    return _draw(_cumulative(weights), pointers)


def residual_resample(weights: NDArray[np.float64], rng: np.random.Generator) -> Indices:
    """Take floor(N*w) copies of each particle, fill the rest multinomially."""
    weights = validate_weights(weights)
    n = weights.size
    num_copies = np.floor(n * weights).astype(np.intp)
    indices = np.repeat(np.arange(n), num_copies)

    remaining = n - indices.size
    if remaining > 0:
        residual = n * weights - num_copies
        residual /= np.sum(residual)
        extra = _draw(_cumulative(residual), rng.random(remaining))
        indices = np.concatenate([indices, extra])
    return indices.astype(np.intp)


RESAMPLERS: Dict[str, Callable[[NDArray[np.float64], np.random.Generator], Indices]] = {
    'multinomial': multinomial_resample,
    'systematic': systematic_resample,
    'stratified': stratified_resample,
    'residual': residual_resample,
}


def effective_sample_size(weights: NDArray[np.float64]) -> float:
    """
    Effective sample size 1 / sum(w^2) of a normalized weight vector.

    Ranges from 1 (all weight on one particle) to N (uniform weights).
    """
    weights = np.asarray(weights, dtype=np.float64)
    if weights.size == 0:
        raise EmptyCollectionError("Effective sample size of an empty cloud is undefined")
    return float(1.0 / np.sum(weights ** 2))
