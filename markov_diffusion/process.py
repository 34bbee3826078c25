import numpy as np
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional
from scipy import sparse

from markov_diffusion.discretization import build_generator, build_derivative, validate_grid
from markov_diffusion.stationary import StationaryDistribution, stationary_distribution


class MarkovProcess(ABC):
    """
    A continuous-time Markov process on a finite state space.

    Subclasses provide the generator T such that
    T f = lim_{t->0} (E[f(x_t) | x_0 = x] - f(x)) / t.
    """

    @abstractmethod
    def state_space(self) -> np.ndarray:
        """Points of the state space, aligned with the generator's rows"""

    @abstractmethod
    def generator(self) -> sparse.spmatrix:
        """Generator matrix of the process"""

    def stationary_distribution(self, delta: float = 0.0, psi=None, **kwargs) -> StationaryDistribution:
        """Stationary distribution of the process, see markov_diffusion.stationary"""
        # Diagnostics point at our caller, not at this method
        kwargs.setdefault("stacklevel", 3)
        return stationary_distribution(self, delta=delta, psi=psi, **kwargs)


@dataclass(eq=False)
class DiffusionProcess(MarkovProcess):
    """
    Diffusion dx = mu(x) dt + sigma(x) dZ sampled on a grid.

    The three arrays are stored as read-only float64 arrays of equal length.
    """
    x: np.ndarray  # Strictly increasing grid
    mu: np.ndarray  # Drift at each grid point
    sigma: np.ndarray  # Volatility at each grid point

    def __post_init__(self):
        x, mu, sigma = validate_grid(self.x, self.mu, self.sigma)
        # Own copies, so freezing them never touches the caller's arrays
        self.x, self.mu, self.sigma = np.array(x), np.array(mu), np.array(sigma)
        for arr in (self.x, self.mu, self.sigma):
            arr.flags.writeable = False

    def __len__(self) -> int:
        return len(self.x)

    def state_space(self) -> np.ndarray:
        return self.x

    def generator(self, v: Optional[np.ndarray] = None) -> sparse.csr_matrix:
        """
        Generator f -> mu * f' + 0.5 * sigma^2 * f'', optionally plus v * f.

        Parameters:
        -----------
        v : array-like, optional
            Potential added to the diagonal
        """
        return build_generator(self.x, self.mu, self.sigma, v)

    def derivative_operator(self) -> sparse.csr_matrix:
        """Upwind first-derivative operator, stencils oriented by the drift"""
        return build_derivative(self.x, self.mu)


def state_space(process: MarkovProcess) -> np.ndarray:
    return process.state_space()


def generator(process: MarkovProcess, **kwargs) -> sparse.spmatrix:
    return process.generator(**kwargs)


def derivative_operator(process: DiffusionProcess) -> sparse.csr_matrix:
    return process.derivative_operator()
