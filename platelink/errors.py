# platelink/errors.py
"""
Domain error hierarchy.
Every error carries a machine-readable `reason` that the API returns next to
the human message. Only TransientStorageError is ever retried.
"""


class PlateLinkError(Exception):
    """Base error for the registry, ledger, and referral core."""
    status_code = 500
    default_reason = "Error"

    def __init__(self, reason: str = None, message: str = None):
        self.reason = reason or self.default_reason
        self.message = message or self.reason
        super().__init__(self.message)


class ValidationError(PlateLinkError):
    """Malformed input (plate, referral code, amount)."""
    status_code = 400
    default_reason = "InvalidInput"


class ConflictError(PlateLinkError):
    """Duplicate plate or duplicate referral."""
    status_code = 409
    default_reason = "Conflict"


class NotContactableError(ConflictError):
    """Owner has every contact method switched off."""
    default_reason = "NotContactable"


class InsufficientBalanceError(PlateLinkError):
    status_code = 402
    default_reason = "InsufficientBalance"

    def __init__(self, balance: int = 0, required: int = 0):
        self.balance = balance
        self.required = required
        super().__init__(message=f"Balance {balance} is below the required {required} credits")


class NotFoundError(PlateLinkError):
    status_code = 404
    default_reason = "NotFound"


class NotOwnerError(PlateLinkError):
    status_code = 403
    default_reason = "NotOwner"


class TransientStorageError(PlateLinkError):
    """Storage unavailable after all retries were spent."""
    status_code = 503
    default_reason = "StorageUnavailable"
