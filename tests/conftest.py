"""
tests/conftest.py - Shared fixtures

Vector sizes are kept small so the whole suite runs quickly on CPU.
"""

import pytest

from hdc_core import create_algebra
from hdc_reasoning import ReasoningConfig, ReasoningSession

# Small but still well above capacity for the handful of facts per test.
TEST_SIZES = {
    "dense-binary": 4096,
    "sparse-polynomial": 8,
    "metric-affine": 512,
    "exact": 32,
}

ALL_STRATEGIES = list(TEST_SIZES)


@pytest.fixture(params=ALL_STRATEGIES)
def algebra(request):
    """One fresh algebra per strategy."""
    return create_algebra(strategy=request.param, dimensions=TEST_SIZES[request.param])


@pytest.fixture
def dense():
    return create_algebra(strategy="dense-binary", dimensions=4096)


@pytest.fixture
def make_session():
    """Factory for isolated sessions: make_session("exact", closed_world=True)."""

    def _make(strategy: str = "dense-binary", **overrides):
        config = ReasoningConfig.create(
            algebra={"strategy": strategy, "dimensions": TEST_SIZES[strategy]},
            **overrides,
        )
        return ReasoningSession(config)

    return _make


@pytest.fixture
def session(make_session):
    return make_session()
