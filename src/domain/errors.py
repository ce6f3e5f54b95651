from __future__ import annotations


class FinanceError(Exception):
    """Base class for every error raised by the finance core."""


class ValidationError(FinanceError, ValueError):
    pass


class CycleError(FinanceError):
    pass


class ConflictError(FinanceError):
    pass


class NotFoundError(FinanceError, LookupError):
    pass
