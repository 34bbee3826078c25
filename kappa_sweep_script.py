import numpy as np
import os
import time
from pathlib import Path

# Import custom modules
from markov_diffusion.processes import OrnsteinUhlenbeckConfig, ornstein_uhlenbeck
from markov_diffusion.stationary import stationary_distribution


def kappa_sweep(
        kappa_values,  # Mean-reversion speeds to sweep
        xbar: float = 0.0,  # Long-run mean
        sigma: float = 1.0,  # Volatility
        length: int = 100,  # Number of grid points
        delta: float = 0.0,  # Discount rate (0 for the eigenvector solve)
        method: str = "dense",  # Eigen-solver used when delta == 0
        output_dir: str = "results_kappa_sweep"
):
    """
    Compute stationary distributions of Ornstein-Uhlenbeck processes for a range
    of mean-reversion speeds and compare their moments with the closed form.

    Parameters:
    -----------
    kappa_values : sequence of float
        Mean-reversion speeds
    xbar : float
        Long-run mean
    sigma : float
        Volatility
    length : int
        Number of grid points
    delta : float
        Discount rate passed to the solver
    method : str
        Eigen-solver, "dense" or "sparse"
    output_dir : str
        Directory to save results

    Returns:
    --------
    dict
        Dictionary containing the moments and distributions for every kappa
    """
    start_time = time.time()
    kappa_values = np.asarray(kappa_values, dtype=np.float64)
    num_kappa = len(kappa_values)

    print(f"Ornstein-Uhlenbeck kappa sweep:")
    print(f"- Long-run mean: {xbar}")
    print(f"- Volatility: {sigma}")
    print(f"- Grid length: {length}")
    print(f"- Discount rate: {delta}")

    # Each row holds one kappa
    grids = np.zeros((num_kappa, length))
    densities = np.zeros((num_kappa, length))
    means = np.zeros(num_kappa)
    variances = np.zeros(num_kappa)
    exact_variances = np.zeros(num_kappa)

    for idx, kappa in enumerate(kappa_values):
        config = OrnsteinUhlenbeckConfig(xbar=xbar, kappa=kappa, sigma=sigma, length=length)
        process = ornstein_uhlenbeck(config)

        # A uniform reference measure is needed for the resolvent branch
        psi = np.ones(length) / length if delta > 0 else None
        result = stationary_distribution(process, delta=delta, psi=psi, method=method)

        x = process.state_space()
        grids[idx] = x
        densities[idx] = result.distribution
        means[idx] = result.mean(x)
        variances[idx] = result.variance(x)
        exact_variances[idx] = config.stationary_variance

        status = "ok" if result.converged else "; ".join(result.diagnostics)
        print(f"kappa = {kappa:.4f}: mean = {means[idx]: .5f}, variance = {variances[idx]:.5f} "
              f"(exact {exact_variances[idx]:.5f}) [{status}]")

    Path(output_dir).mkdir(parents=True, exist_ok=True)
    np.savez(os.path.join(output_dir, "kappa_sweep.npz"),
             kappa=kappa_values, x=grids, density=densities,
             mean=means, variance=variances, exact_variance=exact_variances)

    total_time = time.time() - start_time
    print(f"Sweep completed in {total_time:.2f} seconds, results saved to {output_dir}")

    return {
        'kappa': kappa_values,
        'x': grids,
        'density': densities,
        'mean': means,
        'variance': variances,
        'exact_variance': exact_variances,
        'metadata': {
            'xbar': xbar,
            'sigma': sigma,
            'length': length,
            'delta': delta,
            'method': method,
            'computation_time': total_time
        }
    }


if __name__ == "__main__":
    # Example usage
    results = kappa_sweep(
        kappa_values=np.linspace(0.05, 1.0, 20),
        xbar=0.0,
        sigma=1.0,
        length=200,
        delta=0.0
    )

    rel_error = np.abs(results['variance'] / results['exact_variance'] - 1.0)
    print(f"Largest relative variance error: {rel_error.max():.4f}")
