"""Errors raised to callers of the engine's spend and broadcast operations.

Network failures inside the sync cycle are logged, never raised, so nothing
here is used for them.
"""


class SpendValidationError(ValueError):
    """The spend request is malformed; raised before any network call."""


class MultipleOutputsError(SpendValidationError):
    def __init__(self, message="Error: only one output allowed"):
        super().__init__(message)


class MissingDestinationError(SpendValidationError, TypeError):
    def __init__(self, message="Missing destination address"):
        super().__init__(message)


class NoAmountSpecifiedError(SpendValidationError):
    def __init__(self, message="Unable to create zero-amount transaction."):
        super().__init__(message)


class FundsError(Exception):
    """The wallet cannot cover the requested amount."""


class InsufficientFundsError(FundsError):
    def __init__(self, message="Insufficient funds"):
        super().__init__(message)


class PendingFundsError(FundsError):
    def __init__(self, message="Not enough confirmed funds. Please wait for incoming funds to unlock."):
        super().__init__(message)


class TransactionBuildError(Exception):
    """The transaction builder refused the spend."""


class BroadcastRejectedError(Exception):
    """The network refused a signed transaction."""
