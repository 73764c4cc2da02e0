"""
Errors
======

Exceptions raised by FishFlow.

Numerical edge cases (singular structure tensors) are NOT errors and
never raise; see fishflow.calc.velocity.
"""


class InvalidConfigurationError(ValueError):
    """Raised when configuration values are impossible or inconsistent."""
    pass


class DimensionMismatchError(ValueError):
    """Raised when frame, background or grid dimensions do not agree."""
    pass


class VideoOpenError(RuntimeError):
    """Raised when an input video cannot be opened."""
    pass
