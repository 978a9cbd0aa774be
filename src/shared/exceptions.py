"""
Domain exceptions for the assignment engine.

Every error carries a message and, optionally, the underlying error that
caused it. The `retryable` flag tells the event boundary whether the hosting
event system should redeliver the event.
"""

from typing import Optional


class AutomationError(Exception):
    """Base class for all automation errors"""

    retryable = False

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        self.message = message
        self.original_error = original_error
        super().__init__(self.message)

    def __str__(self):
        if self.original_error:
            return f"{self.message} | Original error: {str(self.original_error)}"
        return self.message


class ResourceNotFoundError(AutomationError):
    """Raised when a referenced order, runner, restaurant or customer is missing"""


class MalformedInputError(AutomationError):
    """Raised when a document carries data the engine cannot interpret"""


class TransientStoreError(AutomationError):
    """Raised when a store read or write fails for a reason that may go away"""

    retryable = True


class TransactionContentionError(TransientStoreError):
    """Raised when an optimistic transaction keeps losing to concurrent writers"""


class AssignmentContentionError(TransientStoreError):
    """Raised when every claim attempt for an order hit a stale runner snapshot"""
