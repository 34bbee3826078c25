import numpy as np
import warnings
from dataclasses import dataclass
from typing import Optional, Tuple
from scipy import linalg, sparse
from scipy.sparse import linalg as splinalg

from markov_diffusion.errors import (
    InvalidArgument,
    NumericalFailure,
    NegativeMassWarning,
    PrincipalEigenvalueWarning,
)

# Normalized entries below this value before taking |g| indicate a broken discretization
NEGATIVE_MASS_TOL = 1e-8
# Shift used by the sparse eigen-solver, relative to the largest diagonal entry of T
SHIFT_SCALE = 1e-8
# ARPACK needs k < n - 1; small operators are cheaper to decompose densely anyway
DENSE_FALLBACK_SIZE = 16
# Relative size of sum(psi) below which psi counts as having no mass
PSI_MASS_TOL = 1e-12
METHODS = ("dense", "sparse")


@dataclass(frozen=True)
class StationaryDistribution:
    """
    Stationary distribution of a finite-state Markov chain plus solver diagnostics.

    Attributes:
    -----------
    distribution : np.ndarray
        Non-negative weights aligned with the state space, summing to 1
    method : str
        "resolvent" for delta > 0, "eigen" for delta == 0
    eigenvalue : float, optional
        Principal eigenvalue found by the eigen branch (expected to be 0)
    min_raw_mass : float
        Smallest normalized entry before the absolute value was taken
    diagnostics : tuple of str
        Non-fatal warnings raised during the computation
    """
    distribution: np.ndarray
    method: str
    eigenvalue: Optional[float] = None
    min_raw_mass: float = 0.0
    diagnostics: Tuple[str, ...] = ()

    @property
    def converged(self) -> bool:
        return not self.diagnostics

    def __len__(self) -> int:
        return len(self.distribution)

    def mean(self, x) -> float:
        """Mean of the grid values x under the distribution"""
        return float(np.dot(self.distribution, np.asarray(x, dtype=np.float64)))

    def variance(self, x) -> float:
        """Variance of the grid values x under the distribution"""
        x = np.asarray(x, dtype=np.float64)
        return float(np.dot(self.distribution, (x - self.mean(x)) ** 2))


def _generator_of(source) -> sparse.csr_matrix:
    """Generator of a process exposing generator(), or the matrix itself"""
    make_generator = getattr(source, "generator", None)
    T = make_generator() if callable(make_generator) else source

    if sparse.issparse(T):
        T = sparse.csr_matrix(T, dtype=np.float64)
    else:
        T = np.asarray(T, dtype=np.float64)
        if T.ndim != 2:
            raise InvalidArgument(f"Generator must be a matrix, got shape {T.shape}")
        T = sparse.csr_matrix(T)

    if T.shape[0] != T.shape[1] or T.shape[0] == 0:
        raise InvalidArgument(f"Generator must be a non-empty square matrix, got shape {T.shape}")
    if not np.all(np.isfinite(T.data)):
        raise InvalidArgument("Generator contains non-finite entries")
    return T


def _resolvent_solve(T: sparse.csr_matrix, delta: float, psi: np.ndarray) -> np.ndarray:
    """Solve (delta * I - T') g = delta * psi with a sparse LU factorization"""
    n = T.shape[0]
    A = (delta * sparse.identity(n, format="csc") - T.T).tocsc()
    try:
        lu = splinalg.splu(A)
    except RuntimeError as exc:
        raise NumericalFailure(f"Resolvent matrix is singular for delta = {delta}") from exc

    g = lu.solve(delta * psi)
    if not np.all(np.isfinite(g)):
        raise NumericalFailure(f"Resolvent solve returned non-finite values for delta = {delta}")
    return g


def _dense_eigenpair(A: sparse.spmatrix) -> Tuple[float, np.ndarray]:
    try:
        eigenvalues, eigenvectors = linalg.eig(A.toarray())
    except (linalg.LinAlgError, ValueError) as exc:
        raise NumericalFailure("Dense eigen-decomposition failed") from exc

    index = np.argmin(np.abs(eigenvalues))
    return eigenvalues[index], eigenvectors[:, index]


def _sparse_eigenpair(A: sparse.spmatrix) -> Tuple[float, np.ndarray]:
    """Shift-invert Arnoldi iteration around a small positive shift"""
    if A.shape[0] < DENSE_FALLBACK_SIZE:
        return _dense_eigenpair(A)

    shift = SHIFT_SCALE * max(np.abs(A.diagonal()).max(), 1.0)
    try:
        eigenvalues, eigenvectors = splinalg.eigs(A.tocsc(), k=1, sigma=shift, which="LM")
    except (splinalg.ArpackNoConvergence, splinalg.ArpackError, RuntimeError) as exc:
        raise NumericalFailure("Sparse eigen-solver did not converge") from exc

    return eigenvalues[0], eigenvectors[:, 0]


def principal_eigenpair(A, method: str = "dense") -> Tuple[float, np.ndarray]:
    """
    Eigenvalue of A with the smallest absolute value, and its eigenvector.

    For the transpose of a generator this eigenvalue is zero and the
    eigenvector is proportional to the stationary distribution.

    Parameters:
    -----------
    A : sparse matrix
        Square matrix
    method : str
        "dense" for a full decomposition, "sparse" for shift-invert ARPACK

    Returns:
    --------
    tuple (float, np.ndarray)
        Real parts of the eigenvalue and eigenvector
    """
    if method == "dense":
        eta, g = _dense_eigenpair(A)
    elif method == "sparse":
        eta, g = _sparse_eigenpair(A)
    else:
        raise InvalidArgument(f"Unknown eigen method '{method}', expected one of {METHODS}")

    g = np.real(g)
    if not np.all(np.isfinite(g)):
        raise NumericalFailure("Principal eigenvector contains non-finite values")
    return float(np.real(eta)), g


def stationary_distribution(source,
                            delta: float = 0.0,
                            psi=None,
                            method: str = "dense",
                            tol: float = 1e-5,
                            warn: bool = True,
                            stacklevel: int = 2) -> StationaryDistribution:
    """
    Compute the stationary distribution of a Markov chain given by its generator.

    For delta > 0 the discounted occupation measure g solving
    (delta * I - T') g = delta * psi is returned; as delta -> 0 with psi
    a reference measure it converges to the stationary distribution. For
    delta == 0 the eigenvector of T' for the eigenvalue closest to zero is
    used instead.

    Small negative entries produced by round-off are removed by taking the
    absolute value before the final normalization. This masks noise only:
    entries below -1e-8 after normalization are reported as a diagnostic.

    Parameters:
    -----------
    source : MarkovProcess or matrix
        Object exposing generator(), or the generator matrix itself
    delta : float, default 0.0
        Discount rate, must be non-negative
    psi : array-like, optional
        Reference measure for the resolvent branch (zeros by default)
    method : str, default "dense"
        Eigen-solver used when delta == 0, "dense" or "sparse"
    tol : float, default 1e-5
        Largest accepted |eigenvalue| before a diagnostic is raised
    warn : bool, default True
        Also emit diagnostics through the warnings module
    stacklevel : int, default 2
        Passed to warnings.warn; 2 points at the caller of this function

    Returns:
    --------
    StationaryDistribution
        Normalized distribution and diagnostics
    """
    delta = float(delta)
    if not np.isfinite(delta):
        raise InvalidArgument(f"δ must be finite (got {delta})")
    # The check is delta >= 0; the wording predates the delta == 0 branch
    if delta < 0:
        raise InvalidArgument(f"δ needs to be positive (got {delta})")
    if method not in METHODS:
        raise InvalidArgument(f"Unknown eigen method '{method}', expected one of {METHODS}")

    T = _generator_of(source)
    n = T.shape[0]

    if psi is None:
        psi = np.zeros(n, dtype=np.float64)
    else:
        psi = np.ascontiguousarray(psi, dtype=np.float64)
        if psi.shape != (n,):
            raise InvalidArgument(f"psi must have length {n}, got shape {psi.shape}")

    issues = []
    if delta > 0:
        # sum(g) == sum(psi), so a zero-mass psi leaves nothing to normalize
        if abs(psi.sum()) <= PSI_MASS_TOL * np.abs(psi).sum():
            raise InvalidArgument("psi must have non-zero total mass when δ > 0")
        g = _resolvent_solve(T, delta, psi)
        eta = None
        label = "resolvent"
    else:
        eta, g = principal_eigenpair(T.T, method=method)
        label = "eigen"
        if abs(eta) > tol:
            issues.append((f"Principal Eigenvalue does not seem to be zero (|η| = {abs(eta):.3e} > {tol:g})",
                           PrincipalEigenvalueWarning))

    total = g.sum()
    if total == 0 or not np.isfinite(total):
        raise NumericalFailure(f"Cannot normalize solution with total mass {total}")
    g = g / total

    min_raw_mass = float(g.min())
    if min_raw_mass < -NEGATIVE_MASS_TOL:
        issues.append((f"Solution has negative mass {min_raw_mass:.3e} before taking absolute values; "
                       "the discretization may not be a valid generator",
                       NegativeMassWarning))

    g = np.abs(g)
    g /= g.sum()

    if warn:
        for message, category in issues:
            warnings.warn(message, category, stacklevel=stacklevel)

    return StationaryDistribution(
        distribution=g,
        method=label,
        eigenvalue=eta,
        min_raw_mass=min_raw_mass,
        diagnostics=tuple(message for message, _ in issues),
    )
