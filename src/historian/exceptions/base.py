from __future__ import annotations


class HistorianError(Exception):
    """Base exception class for all Historian-specific errors.

    All custom exceptions raised by Historian inherit from this class, so
    callers can catch every Historian failure at their boundary while system
    exceptions propagate naturally.

    Attributes:
        message: Human-readable error message describing what went wrong.
    """

    def __init__(self, message: str) -> None:
        """Initialize the HistorianError.

        Args:
            message: Human-readable error message.
        """
        self.message = message
        super().__init__(message)
