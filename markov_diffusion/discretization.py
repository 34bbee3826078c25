import numpy as np
from numba import njit
from scipy import sparse
from typing import Optional

from markov_diffusion.errors import InvalidArgument


@njit
def _accumulate(lower: np.ndarray, diag: np.ndarray, upper: np.ndarray,
                i: int, j: int, value: float):
    """Add value to entry (i, j) of a tridiagonal matrix stored by diagonals"""
    if j == i:
        diag[i] += value
    elif j == i + 1:
        upper[i] += value
    else:
        lower[j] += value


@njit
def _assemble_tridiagonal(x: np.ndarray, mu: np.ndarray, sigma: np.ndarray):
    """
    Assemble the operator f -> mu * f' + 0.5 * sigma^2 * f'' on the grid x.
    This function is JIT-compiled for performance.

    Neighbour indices are clamped at both ends of the grid, so the boundary
    rows use one-sided stencils and drift pointing out of the grid cancels
    on the diagonal (reflecting boundary).

    Parameters:
    -----------
    x : np.ndarray
        Strictly increasing grid, length n >= 2
    mu, sigma : np.ndarray
        Drift and volatility evaluated on the grid

    Returns:
    --------
    tuple of np.ndarray
        (lower, diag, upper) diagonals of lengths n - 1, n, n - 1
    """
    n = x.shape[0]
    lower = np.zeros(n - 1, dtype=np.float64)
    diag = np.zeros(n, dtype=np.float64)
    upper = np.zeros(n - 1, dtype=np.float64)

    for i in range(n):
        i_next = min(i + 1, n - 1)
        i_prev = max(i - 1, 0)
        dxp = x[min(i, n - 2) + 1] - x[min(i, n - 2)]
        dxm = x[i_prev + 1] - x[i_prev]
        dx = 0.5 * (dxm + dxp)

        # upwinding keeps the off-diagonals non-negative
        if mu[i] >= 0.0:
            _accumulate(lower, diag, upper, i, i_next, mu[i] / dxp)
            _accumulate(lower, diag, upper, i, i, -mu[i] / dxp)
        else:
            _accumulate(lower, diag, upper, i, i, mu[i] / dxm)
            _accumulate(lower, diag, upper, i, i_prev, -mu[i] / dxm)

        half_var = 0.5 * sigma[i] * sigma[i]
        _accumulate(lower, diag, upper, i, i_prev, half_var / (dxm * dx))
        _accumulate(lower, diag, upper, i, i, -half_var * 2.0 / (dxm * dxp))
        _accumulate(lower, diag, upper, i, i_next, half_var / (dxp * dx))

    return lower, diag, upper


@njit
def _correct_row_sums(lower: np.ndarray, diag: np.ndarray, upper: np.ndarray,
                      v: np.ndarray):
    """Shift each diagonal entry so that row i sums to v[i] in float64"""
    n = diag.shape[0]
    for i in range(n):
        c = 0.0
        if i > 0:
            c += lower[i - 1]
        c += diag[i]
        if i < n - 1:
            c += upper[i]
        diag[i] += v[i] - c


def _as_float_array(values, name: str) -> np.ndarray:
    arr = np.ascontiguousarray(values, dtype=np.float64)
    if arr.ndim != 1:
        raise InvalidArgument(f"{name} must be one-dimensional, got shape {arr.shape}")
    if not np.all(np.isfinite(arr)):
        raise InvalidArgument(f"{name} contains non-finite values")
    return arr


def validate_grid(x, mu, sigma):
    """
    Convert grid, drift and volatility to contiguous float64 arrays and check them.

    Raises:
    -------
    InvalidArgument
        If the arrays differ in length, the grid is empty, contains
        non-finite values or is not strictly increasing.
    """
    x = _as_float_array(x, "x")
    mu = _as_float_array(mu, "mu")
    sigma = _as_float_array(sigma, "sigma")

    if not len(x) == len(mu) == len(sigma):
        raise InvalidArgument("Vector for grid, drift, and volatility should have the same size "
                              f"(got {len(x)}, {len(mu)}, {len(sigma)})")
    if len(x) == 0:
        raise InvalidArgument("Grid must contain at least one point")
    if np.any(np.diff(x) <= 0):
        raise InvalidArgument("Grid must be strictly increasing")
    return x, mu, sigma


def build_generator(x, mu, sigma, v: Optional[np.ndarray] = None) -> sparse.csr_matrix:
    """
    Build the discretized generator of dx = mu(x) dt + sigma(x) dZ on a grid.

    The returned tridiagonal matrix T approximates the operator
    f -> v * f + mu * f' + 0.5 * sigma^2 * f''. Drift is discretized with an
    upwind scheme keyed on the sign of mu, diffusion with a central scheme,
    and the diagonal is corrected after assembly so that each row sums to
    v (zero by default) to machine precision. With v = 0 the off-diagonals
    are non-negative and the diagonal non-positive.

    A single-point grid has no neighbours and gives the 1x1 matrix [[v[0]]].

    Parameters:
    -----------
    x : array-like
        Strictly increasing grid
    mu : array-like
        Drift at each grid point
    sigma : array-like
        Volatility at each grid point
    v : array-like, optional
        Potential added to the diagonal (Feynman-Kac term)

    Returns:
    --------
    scipy.sparse.csr_matrix
        n x n generator matrix
    """
    x, mu, sigma = validate_grid(x, mu, sigma)
    n = len(x)

    if v is None:
        v = np.zeros(n, dtype=np.float64)
    else:
        v = _as_float_array(v, "v")
        if len(v) != n:
            raise InvalidArgument(f"Potential length ({len(v)}) must match grid length ({n})")

    if n == 1:
        return sparse.csr_matrix(v.reshape(1, 1))

    lower, diag, upper = _assemble_tridiagonal(x, mu, sigma)
    _correct_row_sums(lower, diag, upper, v)
    return sparse.diags([lower, diag, upper], [-1, 0, 1], shape=(n, n), format="csr")


def build_derivative(x, mu) -> sparse.csr_matrix:
    """
    Upwind first-derivative operator f -> f', with the stencil direction
    chosen by the sign of mu.

    Each row of the drift-only generator is divided by mu, including its
    zero entries, so a row where mu is exactly zero comes back as NaN
    (numpy emits its invalid-value RuntimeWarning).
    """
    x = _as_float_array(x, "x")
    mu = _as_float_array(mu, "mu")
    T = build_generator(x, mu, np.zeros_like(mu))
    n = len(mu)
    if n == 1:
        return sparse.csr_matrix((T.diagonal() / mu).reshape(1, 1))

    # Divide the dense diagonals: 0 / 0 must become NaN, not a dropped entry
    lower = T.diagonal(-1) / mu[1:]
    diag = T.diagonal() / mu
    upper = T.diagonal(1) / mu[:-1]
    return sparse.diags([lower, diag, upper], [-1, 0, 1], shape=(n, n), format="csr")
