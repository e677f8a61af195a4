"""
Helper functions for numeric sequences.

This module provides incremental adjustment of one sequence toward or away
from another (attractor / repeller updates), and the discrete integral,
Cauchy product and circular convolution over sequences. Like the distance
functions, these accept lists, tuples and 1-D numpy arrays.
"""

import operator
from typing import Callable, List, Union

import numpy as np
from numpy.typing import NDArray

from .distance import as_sequence, check_equal_length
from .exceptions import DimensionMismatchError
from .types import Number, NumericSequence


BinaryOperation = Callable[[float, float], float]


def _validate_step(mu: float) -> None:
    if not (0.0 < mu <= 1.0):
        raise ValueError(f"Step size mu must be in (0, 1], got {mu}")


def _write_back(sequence: NumericSequence, values: NDArray[np.float64]) -> Union[NDArray, List[float]]:
    # float arrays and lists are updated in place; integer arrays would truncate,
    # so they and immutable sequences get a new container
    if isinstance(sequence, np.ndarray):
        if np.issubdtype(sequence.dtype, np.floating):
            sequence[...] = values.reshape(sequence.shape)
            return sequence
        return values.reshape(sequence.shape)
    if isinstance(sequence, list):
        sequence[:] = values.tolist()
        return sequence
    return values.tolist()


def adjust_toward(sequence: NumericSequence, reference: NumericSequence,
                  mu: float) -> Union[NDArray, List[float]]:
    """
    Incremental adjustment of a sequence towards a reference sequence.

        d = d + mu (ref - d)

    If "ref" is smaller than "d", the update is negative and makes "d"
    smaller. With mu = 1 the sequence becomes equal to the reference.

    Args:
        sequence: The sequence to be moved (float arrays and lists are updated in place)
        reference: The attractor sequence, same length
        mu: Step size, 0 < mu <= 1

    Returns:
        The adjusted sequence

    Raises:
        ValueError: If mu is outside (0, 1]
        DimensionMismatchError: If the sequences differ in length
    """
    _validate_step(mu)
    x = as_sequence(sequence)
    y = as_sequence(reference)
    check_equal_length(x, y)
    if mu == 1.0:
        return _write_back(sequence, y.copy())
    return _write_back(sequence, x + (y - x) * mu)


def adjust_away(sequence: NumericSequence, reference: NumericSequence,
                mu: float) -> Union[NDArray, List[float]]:
    """
    Incremental adjustment of a sequence back from a reference sequence.

        d = d + mu (d - ref)

    Args:
        sequence: The sequence to be moved (float arrays and lists are updated in place)
        reference: The repeller sequence, same length
        mu: Step size, 0 < mu <= 1

    Returns:
        The adjusted sequence

    Raises:
        ValueError: If mu is outside (0, 1]
        DimensionMismatchError: If the sequences differ in length
    """
    _validate_step(mu)
    x = as_sequence(sequence)
    y = as_sequence(reference)
    check_equal_length(x, y)
    return _write_back(sequence, x + (x - y) * mu)


def clean(sequence: NumericSequence) -> Union[NDArray, List[float]]:
    """Set every element of a sequence to zero."""
    return _write_back(sequence, np.zeros(len(sequence)))


def integral(first: NumericSequence, second: NumericSequence,
             binary_op1: BinaryOperation = operator.add,
             binary_op2: BinaryOperation = operator.mul) -> NDArray[np.float64]:
    """
    Running discrete integral of a function given a kernel.

    Output element i is op1-accumulated over op2(first[k], second[k]) for
    k <= i. With the default operations this is the cumulative sum of the
    element-wise product.

    Args:
        first: Function values
        second: Kernel values, same length
        binary_op1: Accumulation operation (default addition)
        binary_op2: Combination operation (default multiplication)

    Returns:
        NDArray[np.float64]: Running values, same length as the input
    """
    x = as_sequence(first)
    y = as_sequence(second)
    check_equal_length(x, y)
    if x.size == 0:
        return np.empty(0)
    if binary_op1 is operator.add and binary_op2 is operator.mul:
        return np.cumsum(x * y)

    result = np.empty(x.size)
    value = binary_op2(x[0], y[0])
    result[0] = value
    for i in range(1, x.size):
        value = binary_op1(value, binary_op2(x[i], y[i]))
        result[i] = value
    return result


def cauchy_product(first: NumericSequence, second: NumericSequence) -> NDArray[np.float64]:
    """
    The Cauchy product c_n = sum_{k=0}^{n} a_k * b_{m-1-k}, m = len(second).

    Very similar to integral(), but the second sequence is walked backwards
    from its last element. Each output is one partial sum.

    Raises:
        DimensionMismatchError: If the second sequence is shorter than the first
    """
    a = as_sequence(first)
    b = as_sequence(second)
    if b.size < a.size:
        raise DimensionMismatchError(a.size, b.size,
                                     f"Second sequence too short for Cauchy product: {a.size} vs {b.size}")
    return np.cumsum(a * b[::-1][:a.size])


def reverse_inner_product(first: NumericSequence, second: NumericSequence,
                          init: Number = 0.0) -> float:
    """Inner product where the second sequence is iterated backwards."""
    a = as_sequence(first)
    b = as_sequence(second)
    check_equal_length(a, b)
    return float(init + np.dot(a, b[::-1]))


def circular_convolution(first: NumericSequence, second: NumericSequence,
                         shift: int = 1) -> NDArray[np.float64]:
    """
    Discrete circular convolution between two equal-length sequences.

    A plain convolution multiplies x[i] with y[shift-i] and runs off the end
    of a finite sequence; the circular version wraps the index:

        conv(m) = sum_{k=0}^{n-1} { a_k * b_{(m-k) % n} }

    In vector terms: the second sequence is rotated by "shift" and reversed,
    and its inner product with the first is taken, len(first) times. Output
    j holds conv((j+1) * shift), so with shift 1 the first output multiplies
    a[0] with b[1], a[1] with b[0], a[2] with b[n-1], and so on. The result
    is periodic in shift with period n. The inputs are not modified.

    The output order follows conv(m) above. Rotating the second sequence
    right by shift before each reversed inner product visits the same values
    in a different order: for a = [1, 2, 3] and b = [1, 0, 0] that gives
    [2, 1, 3] where this function returns [2, 3, 1].

    Args:
        first: First sequence
        second: Second sequence, same length
        shift: Rotation applied before every output (default 1)

    Returns:
        NDArray[np.float64]: len(first) convolution values

    Raises:
        DimensionMismatchError: If the sequences differ in length
    """
    a = as_sequence(first)
    b = as_sequence(second)
    check_equal_length(a, b)
    n = a.size
    result = np.empty(n)
    if n == 0:
        return result

    offsets = np.arange(n)
    for j in range(n):
        indices = ((j + 1) * shift - offsets) % n
        result[j] = np.dot(a, b[indices])
    return result
