from __future__ import annotations


class PortfolioError(Exception):
    """Base class for recoverable portfolio/tip operation failures."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field


class InvalidInputError(PortfolioError):
    """A request field is missing or outside its allowed range."""


class CapacityError(PortfolioError):
    """The operation would exceed the portfolio's weight or cash bounds."""


class NotFoundError(PortfolioError):
    """The referenced portfolio, holding or tip does not exist."""


__all__ = ["CapacityError", "InvalidInputError", "NotFoundError", "PortfolioError"]
