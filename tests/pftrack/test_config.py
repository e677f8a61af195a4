#!/usr/bin/env python3
"""
Unit tests for ParticleFilterConfig class.

This module tests the configuration management functionality
of the particle filter.
"""

import sys
import os
# Add source root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', 'src'))

import pytest

from pftrack.config import ParticleFilterConfig


def test_default_config_creation() -> None:
    """Test creating a default configuration."""
    config = ParticleFilterConfig.create_default()

    # Check that all required fields are present
    assert config.num_particles > 0
    assert len(config.auto_coefficients) == 2
    assert config.histogram_bins > 0
    assert config.color_space in ['HSV', 'RGB', 'LAB']
    assert config.likelihood_metric in ['bhattacharyya', 'hellinger']
    assert config.resample_threshold is None
    assert config.num_workers >= 1


def test_fast_motion_config_creation() -> None:
    """Test creating the fast-motion preset."""
    config = ParticleFilterConfig.create_for_fast_motion()

    assert config.num_particles > ParticleFilterConfig().num_particles
    assert config.motion_noise > ParticleFilterConfig().motion_noise
    assert config.resampling_scheme == 'systematic'
    config.validate()


@pytest.mark.parametrize('field_name, value', [
    ('num_particles', 0),
    ('auto_coefficients', ()),
    ('motion_noise', -1.0),
    ('noise_distribution', 'cauchy'),
    ('size_noise', -0.5),
    ('init_spread', -1.0),
    ('likelihood_metric', 'euclidean'),
    ('likelihood_sigma', 0.0),
    ('resampling_scheme', 'greedy'),
    ('resample_threshold', 1.5),
    ('histogram_bins', 0),
    ('color_space', 'YUV'),
    ('num_workers', 0),
])
def test_config_validation(field_name: str, value: object) -> None:
    """Each invalid parameter is rejected by validate()."""
    config = ParticleFilterConfig.create_default()
    config.validate()

    setattr(config, field_name, value)
    with pytest.raises(ValueError):
        config.validate()


def test_config_to_dict_round_trip() -> None:
    """to_dict() has every field and from_dict() rebuilds the same config."""
    config = ParticleFilterConfig(num_particles=42, seed=3)
    config_dict = config.to_dict()

    expected_keys = [
        'num_particles', 'auto_coefficients', 'motion_noise', 'noise_distribution',
        'size_noise', 'init_spread', 'likelihood_metric', 'likelihood_sigma',
        'resampling_scheme', 'resample_threshold', 'histogram_bins', 'color_space',
        'num_workers', 'seed'
    ]
    for key in expected_keys:
        assert key in config_dict

    assert ParticleFilterConfig.from_dict(config_dict) == config


def test_from_dict_rejects_unknown_keys() -> None:
    with pytest.raises(ValueError):
        ParticleFilterConfig.from_dict({'population_sizes': {}})
