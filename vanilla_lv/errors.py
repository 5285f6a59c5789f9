"""Error types raised while building and evaluating a local-vol model."""


class LocalVolError(Exception):
    """Base exception for the vanilla_lv package."""

    pass


class InvalidInputError(LocalVolError):
    """Raised for malformed model inputs (lengths, ordering, signs)."""

    pass


class DomainError(LocalVolError):
    """Raised when a slope/level combination implies non-positive local vol."""

    pass


class NotInitializedError(LocalVolError):
    """Raised when a model is evaluated before its grid has been built."""

    pass


class CalibrationError(LocalVolError):
    """Raised when the ATM adjusters cannot be solved for."""

    pass


__all__ = [
    "LocalVolError",
    "InvalidInputError",
    "DomainError",
    "NotInitializedError",
    "CalibrationError",
]
