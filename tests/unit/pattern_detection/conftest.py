"""
Pytest configuration for pattern detection unit tests.

These fixtures provide test context without external dependencies.
All tests use synthetic edge arrays or small NetworkX graphs.
"""

import copy
import pytest

from muling.analyzers.structural.structural_pattern_config_loader import load_structural_pattern_config

TEST_NETWORK = "torus"
# 2023-11-14T22:13:20Z, a fixed epoch in milliseconds for synthetic timestamps
BASE_TIMESTAMP_MS = 1_700_000_000_000
HOUR_MS = 3600 * 1000


@pytest.fixture(scope="session")
def test_data_context():
    """Provide shared test context for detectors and analyzer."""
    return {
        'network': TEST_NETWORK,
        'base_timestamp_ms': BASE_TIMESTAMP_MS,
        'hour_ms': HOUR_MS,
    }


@pytest.fixture(scope="session")
def default_config():
    return load_structural_pattern_config()


@pytest.fixture
def structural_config(default_config):
    """Mutable copy of the shipped configuration."""
    return copy.deepcopy(default_config)
