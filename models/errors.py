"""Exceptions raised by the model classes."""


class ShapeError(ValueError):
    """A vector or matrix does not have the dimension the model expects."""


class UsageError(RuntimeError):
    """The model was called in a way its contract forbids (a caller defect)."""
