"""
Markov Diffusion Package
========================

Finite-difference generators and stationary distributions for
one-dimensional diffusion processes dx = mu(x) dt + sigma(x) dZ.

This package provides tools for:
- Building the upwind tridiagonal generator of a diffusion on a grid
- Computing stationary distributions by resolvent solve or eigen-extraction
- Discretizing named processes (Ornstein-Uhlenbeck, Cox-Ingersoll-Ross)
"""

__version__ = "0.1.0"

from markov_diffusion.errors import (
    MarkovDiffusionError,
    InvalidArgument,
    NumericalFailure,
    StationaryDiagnosticWarning,
    PrincipalEigenvalueWarning,
    NegativeMassWarning,
)
from markov_diffusion.discretization import build_generator, build_derivative
from markov_diffusion.stationary import (
    StationaryDistribution,
    stationary_distribution,
    principal_eigenpair,
)
from markov_diffusion.process import (
    MarkovProcess,
    DiffusionProcess,
    state_space,
    generator,
    derivative_operator,
)
from markov_diffusion.processes import (
    OrnsteinUhlenbeckConfig,
    CoxIngersollRossConfig,
    ornstein_uhlenbeck,
    cox_ingersoll_ross,
)

__all__ = [
    # Errors and diagnostics
    'MarkovDiffusionError',
    'InvalidArgument',
    'NumericalFailure',
    'StationaryDiagnosticWarning',
    'PrincipalEigenvalueWarning',
    'NegativeMassWarning',

    # Core
    'build_generator',
    'build_derivative',
    'StationaryDistribution',
    'stationary_distribution',
    'principal_eigenpair',

    # Processes
    'MarkovProcess',
    'DiffusionProcess',
    'state_space',
    'generator',
    'derivative_operator',
    'OrnsteinUhlenbeckConfig',
    'CoxIngersollRossConfig',
    'ornstein_uhlenbeck',
    'cox_ingersoll_ross',
]
