class MarkovDiffusionError(Exception):
    """Base class for errors raised by markov_diffusion."""


class InvalidArgument(MarkovDiffusionError, ValueError):
    """Malformed input shape or parameter outside its valid range."""


class NumericalFailure(MarkovDiffusionError, RuntimeError):
    """Linear solve or eigen-extraction failed on the given operator."""


class StationaryDiagnosticWarning(RuntimeWarning):
    """Non-fatal diagnostic raised while computing a stationary distribution."""


class PrincipalEigenvalueWarning(StationaryDiagnosticWarning):
    pass


class NegativeMassWarning(StationaryDiagnosticWarning):
    pass
