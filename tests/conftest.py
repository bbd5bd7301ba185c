"""
Shared fixtures for the MarkSix test suite.
"""

import pytest

from marksix.config import DEFAULT_WEIGHTS, EngineConfig
from tests.factories import make_history, make_random_history


@pytest.fixture
def synthetic_history():
    return make_history(120)


@pytest.fixture
def random_history():
    return make_random_history(80)


@pytest.fixture
def fast_config():
    """Small configuration that keeps end-to-end runs quick."""
    return EngineConfig(
        use_neural=False,
        num_simulations=100,
        seed_sample_stride=10,
        seed_weight_sets={
            'default': dict(DEFAULT_WEIGHTS),
            'recency_focus': {'gap': 0.14, 'survival': 0.12, 'pattern': 0.08},
        },
    )
