"""
errors.py
---------
Exceptions raised when a precondition of the network or trainer is violated.
None of them are recovered from inside the package.
"""


class ShapeMismatchError(ValueError):
    """Matrix dimensions disagree (input height, target height, parameter shape)."""


class InvalidConfigurationError(ValueError):
    """Bad topology, empty batch, non-positive learning rate or worker count."""


class EncodingError(ValueError):
    """A raw item could not be turned into an input vector."""
