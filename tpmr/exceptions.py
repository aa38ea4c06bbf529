class ConfigurationError(ValueError):
    """Incompatible or missing analysis options. Raised before any work is dispatched."""


class InsufficientData(ValueError):
    """Not enough observations to build a tissue density model."""


class EstimationFailure(RuntimeError):
    """An MR estimator could not produce a usable estimate for a scenario."""
