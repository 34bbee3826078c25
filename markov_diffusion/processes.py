import numpy as np
from dataclasses import dataclass, fields, replace
from typing import Optional
from scipy import stats

from markov_diffusion.errors import InvalidArgument
from markov_diffusion.process import DiffusionProcess


def _power_grid(xmin: float, xmax: float, length: int, pow: float) -> np.ndarray:
    """Grid uniform in x^(1/pow), so pow > 1 concentrates points near xmin"""
    return np.linspace(xmin ** (1.0 / pow), xmax ** (1.0 / pow), length) ** pow


def _check_common(kappa: float, sigma: float, p: float, length: int, pow: float):
    if kappa <= 0:
        raise InvalidArgument(f"Mean-reversion speed kappa must be positive (got {kappa})")
    if sigma <= 0:
        raise InvalidArgument(f"Volatility sigma must be positive (got {sigma})")
    if not 0 < p < 0.5:
        raise InvalidArgument(f"Tail probability p must lie in (0, 0.5) (got {p})")
    if length < 2:
        raise InvalidArgument(f"Grid length must be at least 2 (got {length})")
    if pow <= 0:
        raise InvalidArgument(f"Grid exponent pow must be positive (got {pow})")


def _check_bounds(xmin: float, xmax: float):
    if not xmin < xmax:
        raise InvalidArgument(f"Grid bounds must satisfy xmin < xmax (got {xmin}, {xmax})")


def _resolve_config(config_cls, config, kwargs):
    """Merge a config object with keyword overrides"""
    names = {f.name for f in fields(config_cls)}
    unknown = set(kwargs) - names
    if unknown:
        raise InvalidArgument(f"Unknown {config_cls.__name__} option(s): {sorted(unknown)}")
    if config is None:
        return config_cls(**kwargs)
    return replace(config, **kwargs)


@dataclass
class OrnsteinUhlenbeckConfig:
    """
    dx = kappa * (xbar - x) dt + sigma dZ

    The default grid spans the p and 1 - p quantiles of the stationary
    Normal(xbar, sigma / sqrt(2 kappa)) law. A low p is needed to capture
    the tails of additive functionals of the process.
    """
    xbar: float = 0.0
    kappa: float = 0.1
    sigma: float = 1.0
    p: float = 1e-10
    length: int = 100
    xmin: Optional[float] = None
    xmax: Optional[float] = None
    pow: float = 1.0

    @property
    def stationary_mean(self) -> float:
        return self.xbar

    @property
    def stationary_variance(self) -> float:
        return self.sigma ** 2 / (2.0 * self.kappa)

    def stationary_law(self):
        return stats.norm(loc=self.xbar, scale=np.sqrt(self.stationary_variance))

    def bounds(self):
        law = self.stationary_law()
        xmin = law.ppf(self.p) if self.xmin is None else self.xmin
        xmax = law.ppf(1.0 - self.p) if self.xmax is None else self.xmax
        return float(xmin), float(xmax)

    def to_array(self) -> np.ndarray:
        """Numeric parameters in a fixed order: xbar, kappa, sigma"""
        return np.array([self.xbar, self.kappa, self.sigma], dtype=np.float64)


@dataclass
class CoxIngersollRossConfig:
    """
    dx = kappa * (xbar - x) dt + sigma * sqrt(x) dZ

    The stationary law is Gamma(alpha, scale=beta) with
    alpha = 2 kappa xbar / sigma^2 and beta = sigma^2 / (2 kappa). The
    origin is unattainable only when alpha > 1.
    """
    xbar: float = 0.1
    kappa: float = 0.1
    sigma: float = 1.0
    p: float = 1e-10
    length: int = 100
    alpha: Optional[float] = None
    beta: Optional[float] = None
    xmin: Optional[float] = None
    xmax: Optional[float] = None
    pow: float = 2.0

    @property
    def feller_ratio(self) -> float:
        return 2.0 * self.kappa * self.xbar / self.sigma ** 2

    @property
    def shape(self) -> float:
        return self.feller_ratio if self.alpha is None else self.alpha

    @property
    def scale(self) -> float:
        return self.sigma ** 2 / (2.0 * self.kappa) if self.beta is None else self.beta

    @property
    def stationary_mean(self) -> float:
        return self.shape * self.scale

    @property
    def stationary_variance(self) -> float:
        return self.shape * self.scale ** 2

    def stationary_law(self):
        return stats.gamma(a=self.shape, scale=self.scale)

    def bounds(self):
        law = self.stationary_law()
        xmin = law.ppf(self.p) if self.xmin is None else self.xmin
        xmax = law.ppf(1.0 - self.p) if self.xmax is None else self.xmax
        return float(xmin), float(xmax)

    def to_array(self) -> np.ndarray:
        """Numeric parameters in a fixed order: xbar, kappa, sigma"""
        return np.array([self.xbar, self.kappa, self.sigma], dtype=np.float64)


def ornstein_uhlenbeck(config: Optional[OrnsteinUhlenbeckConfig] = None, **kwargs) -> DiffusionProcess:
    """
    Ornstein-Uhlenbeck process discretized on a quantile-based grid.

    Parameters:
    -----------
    config : OrnsteinUhlenbeckConfig, optional
        Base configuration
    **kwargs
        Overrides for any OrnsteinUhlenbeckConfig field

    Returns:
    --------
    DiffusionProcess
    """
    cfg = _resolve_config(OrnsteinUhlenbeckConfig, config, kwargs)
    _check_common(cfg.kappa, cfg.sigma, cfg.p, cfg.length, cfg.pow)
    xmin, xmax = cfg.bounds()
    _check_bounds(xmin, xmax)

    if xmin > 0:
        x = _power_grid(xmin, xmax, cfg.length, cfg.pow)
    else:
        x = np.linspace(xmin, xmax, cfg.length)
    return DiffusionProcess(x, cfg.kappa * (cfg.xbar - x), cfg.sigma * np.ones(len(x)))


def cox_ingersoll_ross(config: Optional[CoxIngersollRossConfig] = None, **kwargs) -> DiffusionProcess:
    """
    Cox-Ingersoll-Ross process discretized on a grid concentrated near the origin.

    Raises:
    -------
    InvalidArgument
        If 2 kappa xbar / sigma^2 <= 1, in which case 0 is attainable.
    """
    cfg = _resolve_config(CoxIngersollRossConfig, config, kwargs)
    _check_common(cfg.kappa, cfg.sigma, cfg.p, cfg.length, cfg.pow)
    if not cfg.feller_ratio > 1:
        raise InvalidArgument(f"2 * kappa * xbar / sigma^2 must exceed 1 so that 0 is not attainable "
                              f"(got {cfg.feller_ratio:.4g})")
    xmin, xmax = cfg.bounds()
    if xmin < 0:
        raise InvalidArgument(f"CIR grid must be non-negative (got xmin = {xmin})")
    _check_bounds(xmin, xmax)

    x = _power_grid(xmin, xmax, cfg.length, cfg.pow)
    return DiffusionProcess(x, cfg.kappa * (cfg.xbar - x), cfg.sigma * np.sqrt(x))
