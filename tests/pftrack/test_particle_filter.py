#!/usr/bin/env python3
"""
Tests for the PositionParticleFilter engine.

This module tests the phase cycle, weight normalization, resampling, the
failure policy and end-to-end tracking on synthetic frames.
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', 'src'))

import math
from typing import Optional

import cv2
import numpy as np
import pytest

from pftrack import (
    FilterPhase, HistogramExtractor, InvalidTransitionError, ParticleState,
    PositionParticleFilter, parallel_map,
)
from pftrack.types import Frame, Histogram, Region

BINS = 8
MATCH = np.eye(BINS, dtype=np.float32)[0]
MISMATCH = np.eye(BINS, dtype=np.float32)[1]


class UniformHistogramSource:
    """Returns the same uniform histogram for every region."""

    def __init__(self) -> None:
        self.calls = 0

    def get_histogram(self, frame: Frame, region: Region) -> Optional[Histogram]:
        self.calls += 1
        return np.full(BINS, 1.0 / BINS, dtype=np.float32)


class TargetHistogramSource:
    """Histogram matches MATCH only within radius of a target position."""

    def __init__(self, target: tuple, radius: float) -> None:
        self.target = target
        self.radius = radius

    def get_histogram(self, frame: Frame, region: Region) -> Optional[Histogram]:
        dx = region[0] - self.target[0]
        dy = region[1] - self.target[1]
        return MATCH if math.hypot(dx, dy) <= self.radius else MISMATCH


class FailingHistogramSource:
    def get_histogram(self, frame: Frame, region: Region) -> Optional[Histogram]:
        raise RuntimeError("camera buffer gone")


def create_blank_frame() -> np.ndarray:
    return np.zeros((120, 120, 3), dtype=np.uint8)


def create_filter(source=None, **kwargs) -> PositionParticleFilter:
    settings = dict(num_particles=100, seed=42, motion_noise=2.0)
    settings.update(kwargs)
    return PositionParticleFilter(histogram_source=source or UniformHistogramSource(), **settings)


def test_init_creates_uniform_cloud() -> None:
    """Init scatters N particles around the region with weight 1/N."""
    pf = create_filter()
    reference = np.full(BINS, 2.0, dtype=np.float32)
    pf.init(reference, (60, 60, 10, 12))

    assert pf.phase is FilterPhase.INITIALIZED
    assert len(pf.particles) == 100
    np.testing.assert_allclose(pf.weights, 0.01)
    assert all(p.state.size == (10, 12) for p in pf.particles)

    # reference is copied, normalized and frozen
    assert pf.reference_histogram.sum() == pytest.approx(1.0)
    reference[0] = 100.0
    assert pf.reference_histogram[0] == pytest.approx(1.0 / BINS)
    assert not pf.reference_histogram.flags.writeable


def test_init_validation_keeps_filter_uninitialized() -> None:
    pf = create_filter()

    with pytest.raises(ValueError):
        pf.init(np.array([], dtype=np.float32), (60, 60, 10, 10))

    with pytest.raises(ValueError):
        pf.init(MATCH, (60, 60, 0, 10))

    with pytest.raises(ValueError):
        pf.init(MATCH, (60, 60, 10, 10), num_particles=0)

    assert pf.phase is FilterPhase.UNINITIALIZED

    pf.init(MATCH, (60, 60, 10, 10), num_particles=7)
    assert len(pf.particles) == 7


def test_particle_count_override_ends_with_session() -> None:
    pf = create_filter(num_particles=40)
    pf.init(MATCH, (60, 60, 10, 10), num_particles=7)
    assert len(pf.particles) == 7

    pf.reset()
    pf.init(MATCH, (60, 60, 10, 10))
    assert len(pf.particles) == 40
    np.testing.assert_allclose(pf.weights, 1.0 / 40)


def test_illegal_call_order_is_rejected() -> None:
    """Likelihood before transition leaves the filter where it was."""
    pf = create_filter()

    with pytest.raises(InvalidTransitionError):
        pf.estimate()

    pf.init(MATCH, (60, 60, 10, 10))
    pf.set_image(create_blank_frame())

    with pytest.raises(InvalidTransitionError):
        pf.likelihood()
    assert pf.phase is FilterPhase.INITIALIZED

    with pytest.raises(InvalidTransitionError):
        pf.resample()

    with pytest.raises(InvalidTransitionError):
        pf.init(MATCH, (60, 60, 10, 10))


def test_transition_state_is_pure() -> None:
    pf = create_filter()
    state = ParticleState(x=10.0, y=20.0, width=5, height=6,
                          x_history=(8.0, 7.0), y_history=(20.0, 20.0))

    moved = pf.transition_state(state, noise=(0.5, -1.0))

    assert (state.x, state.y) == (10.0, 20.0)
    assert moved.x == pytest.approx(10.0 + 1.8 + 0.5)
    assert moved.y == pytest.approx(19.0)
    assert moved.x_history == (10.0, 8.0)
    assert moved.size == (5, 6)
    assert moved.histogram is None


def test_transition_moves_particles_and_keeps_weights() -> None:
    pf = create_filter()
    pf.init(MATCH, (60, 60, 10, 10))
    before = [p.state.position for p in pf.particles]

    pf.transition()

    assert pf.phase is FilterPhase.TRANSITIONED
    assert pf.frame_count == 1
    after = [p.state.position for p in pf.particles]
    assert before != after
    np.testing.assert_allclose(pf.weights, 0.01)
    assert all(p.state.x_history[0] == b[0] for p, b in zip(pf.particles, before))


def test_likelihood_normalizes_weights() -> None:
    pf = create_filter(source=TargetHistogramSource((60, 60), 4.0))
    pf.set_image(create_blank_frame())
    pf.init(MATCH, (60, 60, 10, 10))
    pf.transition()
    pf.likelihood()

    weights = pf.weights
    assert pf.phase is FilterPhase.WEIGHTED
    assert weights.sum() == pytest.approx(1.0)
    assert np.all(weights >= 0)
    # particles near the target outweigh those far from it
    near = [p.weight for p in pf.particles if math.hypot(p.state.x - 60, p.state.y - 60) <= 4.0]
    far = [p.weight for p in pf.particles if math.hypot(p.state.x - 60, p.state.y - 60) > 4.0]
    assert near and far
    assert min(near) > max(far)
    assert all(p.state.histogram is not None for p in pf.particles)


def test_failed_transition_restores_previous_states() -> None:
    """A particle that cannot be propagated rolls the whole cloud back."""
    pf = create_filter()
    pf.init(MATCH, (60, 60, 10, 10))
    # one history entry where the second-order model needs two
    pf._particles[-1].state = ParticleState(x=60.0, y=60.0, width=10, height=10,
                                            x_history=(60.0,), y_history=(60.0,))
    states_before = [p.state for p in pf.particles]

    with pytest.raises(ValueError):
        pf.transition()

    assert [p.state for p in pf.particles] == states_before
    assert pf.phase is FilterPhase.INITIALIZED
    assert pf.frame_count == 0


def test_likelihood_of_single_state() -> None:
    pf = create_filter(source=TargetHistogramSource((60, 60), 4.0), likelihood_sigma=0.5)
    pf.set_image(create_blank_frame())
    pf.init(MATCH, (60, 60, 10, 10))

    assert pf.likelihood_of(ParticleState.at_rest(60, 60, 10, 10)) == pytest.approx(1.0)
    # Hellinger distance between one-hot histograms is 1
    assert pf.likelihood_of(ParticleState.at_rest(0, 0, 10, 10)) == pytest.approx(math.exp(-2.0))


def test_region_size_overrides_particle_size() -> None:
    pf = create_filter()
    pf.set_image(create_blank_frame())
    pf.init(MATCH, (60, 60, 10, 10))
    pf.transition()
    pf.likelihood(region_size=(12, 14))

    assert all(p.state.size == (12, 14) for p in pf.particles)
    assert pf.estimate()[2:] == pytest.approx((12.0, 14.0))


def test_failed_likelihood_leaves_cloud_untouched() -> None:
    """A failing collaborator does not corrupt the cloud or advance the phase."""
    pf = create_filter(source=FailingHistogramSource())
    pf.set_image(create_blank_frame())
    pf.init(MATCH, (60, 60, 10, 10))
    pf.transition()
    states_before = [p.state for p in pf.particles]

    with pytest.raises(RuntimeError):
        pf.likelihood()

    assert pf.phase is FilterPhase.TRANSITIONED
    assert [p.state for p in pf.particles] == states_before
    np.testing.assert_allclose(pf.weights, 0.01)


def test_likelihood_requires_image() -> None:
    pf = create_filter()
    pf.init(MATCH, (60, 60, 10, 10))
    pf.transition()

    with pytest.raises(ValueError):
        pf.likelihood()
    assert pf.phase is FilterPhase.TRANSITIONED


def test_all_zero_likelihood_falls_back_to_uniform() -> None:
    # regions off-frame all score 0
    pf = create_filter(source=HistogramExtractor(num_bins=2), init_spread=0.0, motion_noise=0.0)
    pf.set_image(create_blank_frame())
    pf.init(np.ones(8, dtype=np.float32), (-100, -100, 10, 10))
    pf.transition()
    pf.likelihood()

    np.testing.assert_allclose(pf.weights, 0.01)


@pytest.mark.parametrize('scheme', ['multinomial', 'systematic', 'stratified', 'residual'])
def test_resample_produces_uniform_cloud(scheme: str) -> None:
    """After resampling the cloud has N particles with weight 1/N."""
    pf = create_filter(source=TargetHistogramSource((60, 60), 4.0), resampling_scheme=scheme)
    pf.set_image(create_blank_frame())
    pf.init(MATCH, (60, 60, 10, 10))
    pf.transition()
    pf.likelihood()

    assert pf.resample() is True
    assert pf.phase is FilterPhase.RESAMPLED
    assert len(pf.particles) == 100
    assert pf.weights.sum() == pytest.approx(1.0)
    np.testing.assert_allclose(pf.weights, 0.01)
    assert pf.resample_count == 1
    # nearly all survivors come from the matching region
    near = sum(1 for p in pf.particles if math.hypot(p.state.x - 60, p.state.y - 60) <= 4.0)
    assert near >= 95


def test_resample_threshold_skips_healthy_cloud() -> None:
    """Uniform weights have full effective sample size, so nothing is resampled."""
    pf = create_filter(resample_threshold=0.5)
    pf.set_image(create_blank_frame())
    pf.init(MATCH, (60, 60, 10, 10))
    pf.transition()
    pf.likelihood()

    assert pf.effective_sample_size() == pytest.approx(100.0)
    assert pf.resample() is False
    assert pf.phase is FilterPhase.RESAMPLED
    assert pf.resample_count == 0

    pf.transition()
    assert pf.phase is FilterPhase.TRANSITIONED


def test_one_cycle_estimate_stays_within_reach() -> None:
    """
    After one cycle from a uniform reference, the mean lies within the bounding
    box of the pre-transition positions grown by the largest single step.
    """
    pf = create_filter(num_particles=100, seed=1234, noise_distribution='uniform', motion_noise=3.0)
    pf.init(np.full(BINS, 1.0 / BINS, dtype=np.float32), (60, 60, 10, 10))

    before = pf.particles
    xs = [p.state.x for p in before]
    ys = [p.state.y for p in before]
    bound = max(
        max(pf.motion_model.max_step(p.state.x, p.state.x_history),
            pf.motion_model.max_step(p.state.y, p.state.y_history))
        for p in before
    )

    pf.set_image(create_blank_frame())
    pf.transition()
    pf.likelihood()
    pf.resample()
    x, y, width, height = pf.estimate()

    assert min(xs) - bound <= x <= max(xs) + bound
    assert min(ys) - bound <= y <= max(ys) + bound
    assert (width, height) == pytest.approx((10.0, 10.0))
    assert len(pf.particles) == 100
    np.testing.assert_allclose(pf.weights, 0.01)


def test_tracking_converges_on_target() -> None:
    pf = create_filter(source=TargetHistogramSource((60, 60), 5.0), num_particles=200)
    pf.init(MATCH, (60, 60, 10, 10))

    for _ in range(3):
        x, y, _, _ = pf.step(create_blank_frame())
        assert math.hypot(x - 60, y - 60) <= 5.5

    assert pf.frame_count == 3
    assert pf.resample_count == 3


def test_workers_do_not_change_results() -> None:
    """Fanning out per-particle work gives the same cloud as a single thread."""
    results = []
    for workers in (1, 4):
        pf = create_filter(source=TargetHistogramSource((60, 60), 4.0), num_workers=workers, seed=99)
        pf.init(MATCH, (60, 60, 10, 10))
        for _ in range(2):
            pf.step(create_blank_frame())
        results.append([(p.state.x, p.state.y) for p in pf.particles])

    assert results[0] == results[1]


def test_parallel_map_keeps_order_and_raises() -> None:
    assert parallel_map(lambda v: v * v, range(10), num_workers=3) == [v * v for v in range(10)]

    def explode(value: int) -> int:
        if value == 5:
            raise KeyError(value)
        return value

    with pytest.raises(KeyError):
        parallel_map(explode, range(10), num_workers=3)


def test_tracks_red_square_with_histogram_extractor() -> None:
    """End to end with OpenCV histograms on a synthetic frame."""
    frame = np.zeros((200, 200, 3), dtype=np.uint8)
    cv2.rectangle(frame, (90, 90), (109, 109), (0, 0, 255), -1)

    extractor = HistogramExtractor(num_bins=BINS)
    reference = extractor.get_histogram(frame, (100, 100, 20, 20))

    pf = PositionParticleFilter(histogram_source=extractor, num_particles=150, seed=5,
                                init_spread=3.0, motion_noise=2.0)
    pf.init(reference, (100, 100, 20, 20))

    for _ in range(3):
        x, y, width, height = pf.step(frame)

    assert abs(x - 100) < 5
    assert abs(y - 100) < 5
    assert (width, height) == pytest.approx((20.0, 20.0))


def test_reset_and_close() -> None:
    pf = create_filter()
    pf.set_image(create_blank_frame())
    pf.init(MATCH, (60, 60, 10, 10))
    pf.transition()

    pf.reset()
    assert pf.phase is FilterPhase.UNINITIALIZED
    assert pf.particles == ()

    pf.init(MATCH, (30, 30, 10, 10))
    assert pf.estimate()[2:] == pytest.approx((10.0, 10.0))

    pf.close()
    assert pf.phase is FilterPhase.CLOSED
    with pytest.raises(InvalidTransitionError):
        pf.transition()
    with pytest.raises(InvalidTransitionError):
        pf.set_image(create_blank_frame())


def test_statistics() -> None:
    pf = create_filter()
    stats = pf.get_statistics()
    assert stats['phase'] == 'uninitialized'
    assert stats['estimate'] is None

    pf.init(MATCH, (60, 60, 10, 10))
    stats = pf.get_statistics()
    assert stats['num_particles'] == 100
    assert stats['max_weight'] == pytest.approx(0.01)
    assert stats['effective_sample_size'] == pytest.approx(100.0)
    assert stats['estimate'] is not None


def test_set_image_validation() -> None:
    pf = create_filter()
    with pytest.raises(ValueError):
        pf.set_image(np.zeros((10, 10), dtype=np.uint8))
