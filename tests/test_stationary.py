import warnings

import numpy as np
import pytest
from numpy.testing import assert_allclose
from scipy import linalg, sparse
from scipy.sparse import linalg as splinalg

from markov_diffusion.errors import (
    InvalidArgument,
    NegativeMassWarning,
    NumericalFailure,
    PrincipalEigenvalueWarning,
    StationaryDiagnosticWarning,
)
from markov_diffusion.discretization import build_generator
from markov_diffusion import stationary as stationary_module
from markov_diffusion.processes import ornstein_uhlenbeck
from markov_diffusion.stationary import (
    StationaryDistribution,
    principal_eigenpair,
    stationary_distribution,
)


def total_variation(p: np.ndarray, q: np.ndarray) -> float:
    return 0.5 * float(np.abs(p - q).sum())


class TestEigenBranch:

    def test_three_point_is_uniform(self, three_point):
        result = stationary_distribution(build_generator(*three_point))
        assert isinstance(result, StationaryDistribution)
        assert result.method == "eigen"
        assert_allclose(result.distribution, np.full(3, 1.0 / 3.0), atol=1e-12)
        assert abs(result.eigenvalue) < 1e-12
        assert result.converged

    def test_two_state_chain(self):
        # 0 -> 1 at rate 1, 1 -> 0 at rate 2
        T = np.array([[-1.0, 1.0], [2.0, -2.0]])
        result = stationary_distribution(T)
        assert_allclose(result.distribution, [2.0 / 3.0, 1.0 / 3.0], atol=1e-12)

    def test_detailed_balance_on_irregular_grid(self, irregular_grid):
        T = build_generator(*irregular_grid)
        p = stationary_distribution(T).distribution
        A = T.toarray()
        flux_up = p[:-1] * np.diag(A, 1)
        flux_down = p[1:] * np.diag(A, -1)
        assert_allclose(flux_up, flux_down, rtol=1e-6, atol=1e-10 * flux_up.max())

    def test_output_is_a_probability_vector(self, irregular_grid):
        p = stationary_distribution(build_generator(*irregular_grid)).distribution
        assert np.all(p >= 0)
        assert p.sum() == pytest.approx(1.0, abs=1e-12)

    def test_sparse_matches_dense(self):
        process = ornstein_uhlenbeck(length=100)
        dense = stationary_distribution(process, method="dense")
        arpack = stationary_distribution(process, method="sparse")
        assert arpack.method == "eigen"
        assert abs(arpack.eigenvalue) < 1e-6
        assert total_variation(dense.distribution, arpack.distribution) < 1e-8

    def test_sparse_falls_back_to_dense_for_small_operators(self, three_point):
        result = stationary_distribution(build_generator(*three_point), method="sparse")
        assert_allclose(result.distribution, np.full(3, 1.0 / 3.0), atol=1e-12)

    def test_single_state(self):
        result = stationary_distribution(build_generator([0.0], [0.0], [1.0]))
        assert_allclose(result.distribution, [1.0])

    def test_principal_eigenpair_picks_smallest_magnitude(self):
        A = sparse.diags([-3.0, 0.5, -2.0, 4.0])
        eta, g = principal_eigenpair(A)
        assert eta == pytest.approx(0.5)
        assert_allclose(np.abs(g), [0.0, 1.0, 0.0, 0.0], atol=1e-12)


class TestResolventBranch:

    def test_three_point_resolvent_is_uniform(self, three_point):
        T = build_generator(*three_point)
        result = stationary_distribution(T, delta=0.5, psi=np.ones(3) / 3)
        assert result.method == "resolvent"
        assert result.eigenvalue is None
        assert_allclose(result.distribution, np.full(3, 1.0 / 3.0), atol=1e-12)

    @pytest.mark.parametrize("delta", [1e-3, 0.1, 1.0, 10.0])
    def test_output_is_a_probability_vector(self, irregular_grid, delta):
        T = build_generator(*irregular_grid)
        n = T.shape[0]
        p = stationary_distribution(T, delta=delta, psi=np.ones(n) / n).distribution
        assert np.all(p >= 0)
        assert p.sum() == pytest.approx(1.0, abs=1e-12)

    def test_large_delta_returns_reference_measure(self, irregular_grid):
        T = build_generator(*irregular_grid)
        n = T.shape[0]
        psi = np.linspace(1.0, 2.0, n)
        p = stationary_distribution(T, delta=1e12, psi=psi).distribution
        assert_allclose(p, psi / psi.sum(), rtol=1e-6)

    def test_small_delta_converges_to_eigenvector(self):
        process = ornstein_uhlenbeck(xbar=0.0, kappa=0.1, sigma=1.0, length=100)
        n = len(process)
        exact = stationary_distribution(process, delta=0.0).distribution
        discounted = stationary_distribution(process, delta=1e-6, psi=np.ones(n) / n).distribution
        assert total_variation(exact, discounted) < 1e-3

    def test_singular_resolvent(self):
        T = np.diag([1.0, 2.0, 3.0])
        with pytest.raises(NumericalFailure):
            stationary_distribution(T, delta=1.0, psi=np.ones(3))

    def test_zero_mass_reference_measure(self):
        process = ornstein_uhlenbeck(length=20)
        psi = np.r_[np.ones(10), -np.ones(10)]
        with pytest.raises(InvalidArgument, match="total mass"):
            stationary_distribution(process, delta=0.5, psi=psi)


class TestEigenFailures:

    def test_dense_decomposition_failure(self, monkeypatch, three_point):
        def fail(*args, **kwargs):
            raise linalg.LinAlgError("eigenvalues did not converge")

        monkeypatch.setattr(stationary_module.linalg, "eig", fail)
        with pytest.raises(NumericalFailure, match="Dense"):
            stationary_distribution(build_generator(*three_point))

    def test_sparse_solver_failure(self, monkeypatch):
        process = ornstein_uhlenbeck(length=100)

        def fail(*args, **kwargs):
            raise splinalg.ArpackNoConvergence("no convergence", np.empty(0), np.empty((100, 0)))

        monkeypatch.setattr(stationary_module.splinalg, "eigs", fail)
        with pytest.raises(NumericalFailure, match="did not converge"):
            stationary_distribution(process, method="sparse")

    def test_non_finite_eigenvector(self, monkeypatch, three_point):
        def nan_pair(A):
            return np.array([0.0]), np.full((3, 1), np.nan)

        monkeypatch.setattr(stationary_module.linalg, "eig", nan_pair)
        with pytest.raises(NumericalFailure, match="non-finite"):
            stationary_distribution(build_generator(*three_point))


class TestArguments:

    def test_negative_delta(self, three_point):
        with pytest.raises(InvalidArgument, match="positive"):
            stationary_distribution(build_generator(*three_point), delta=-0.1)

    def test_non_finite_delta(self, three_point):
        with pytest.raises(InvalidArgument):
            stationary_distribution(build_generator(*three_point), delta=np.inf)

    def test_positive_delta_needs_reference_mass(self, three_point):
        with pytest.raises(InvalidArgument, match="psi"):
            stationary_distribution(build_generator(*three_point), delta=0.1)

    def test_psi_length(self, three_point):
        with pytest.raises(InvalidArgument, match="length"):
            stationary_distribution(build_generator(*three_point), delta=0.1, psi=np.ones(4))

    def test_unknown_method(self, three_point):
        with pytest.raises(InvalidArgument, match="method"):
            stationary_distribution(build_generator(*three_point), method="power")

    def test_non_square_generator(self):
        with pytest.raises(InvalidArgument, match="square"):
            stationary_distribution(np.ones((2, 3)))

    @pytest.mark.parametrize("delta", [0.0, 0.5])
    def test_non_finite_generator(self, delta):
        T = np.array([[np.nan, 1.0], [1.0, -1.0]])
        with pytest.raises(InvalidArgument, match="non-finite"):
            stationary_distribution(T, delta=delta, psi=np.ones(2))

    def test_accepts_object_exposing_generator(self, three_point):
        class Chain:
            def generator(self):
                return build_generator(*three_point)

        result = stationary_distribution(Chain())
        assert_allclose(result.distribution, np.full(3, 1.0 / 3.0), atol=1e-12)


class TestDiagnostics:

    def test_nonzero_principal_eigenvalue_warns(self):
        T = -np.eye(3)
        with pytest.warns(PrincipalEigenvalueWarning, match="does not seem to be zero"):
            result = stationary_distribution(T)
        assert not result.converged
        assert result.eigenvalue == pytest.approx(-1.0)
        assert result.distribution.sum() == pytest.approx(1.0)

    def test_warning_points_at_caller(self):
        with pytest.warns(PrincipalEigenvalueWarning) as record:
            stationary_distribution(-np.eye(3))
        assert record[0].filename == __file__

    def test_diagnostics_are_returned_without_emitting(self):
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            result = stationary_distribution(-np.eye(3), warn=False)
        assert len(result.diagnostics) == 1
        assert "zero" in result.diagnostics[0]

    def test_tolerance_is_configurable(self):
        T = np.array([[-1.0, 1.0], [2.0, -2.0]]) - 1e-4 * np.eye(2)
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            result = stationary_distribution(T, tol=1e-3)
        assert result.converged

    def test_negative_mass_is_reported(self):
        T = sparse.csr_matrix((3, 3))
        psi = np.array([1.0, -0.2, 1.0])
        with pytest.warns(NegativeMassWarning):
            result = stationary_distribution(T, delta=1.0, psi=psi)
        assert result.min_raw_mass == pytest.approx(-0.2 / 1.8)
        assert_allclose(result.distribution, np.array([1.0, 0.2, 1.0]) / 2.2)

    def test_diagnostic_warnings_share_a_base_class(self):
        assert issubclass(PrincipalEigenvalueWarning, StationaryDiagnosticWarning)
        assert issubclass(NegativeMassWarning, RuntimeWarning)


class TestResultMoments:

    def test_three_point_moments(self, three_point):
        x = three_point[0]
        result = stationary_distribution(build_generator(*three_point))
        assert result.mean(x) == pytest.approx(1.0)
        assert result.variance(x) == pytest.approx(2.0 / 3.0)
        assert len(result) == 3
