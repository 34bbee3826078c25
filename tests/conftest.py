"""Shared grids and coefficients for markov_diffusion tests."""

import os

import numpy as np
import pytest


@pytest.fixture(scope="function")
def rng() -> np.random.Generator:
    """Deterministic numpy RNG, seed overridable through TEST_RNG_SEED."""
    seed = int(os.environ.get("TEST_RNG_SEED", "0"))
    return np.random.default_rng(seed)


@pytest.fixture
def three_point():
    """Grid [0, 1, 2] with zero drift and unit volatility."""
    return np.array([0.0, 1.0, 2.0]), np.zeros(3), np.ones(3)


@pytest.fixture
def irregular_grid(rng):
    """Non-uniform grid with drift of both signs and positive volatility."""
    n = 50
    x = np.cumsum(rng.uniform(0.1, 1.0, size=n))
    mu = rng.normal(0.0, 2.0, size=n)
    sigma = rng.uniform(0.2, 2.0, size=n)
    return x, mu, sigma
