"""
Custom exceptions for loyalty ledger business logic.

These exceptions provide more specific error handling than generic Exception,
allowing for better error messages and appropriate HTTP status codes.
"""


class MaiSushiError(Exception):
    """Base exception for all Mai Sushi business logic errors."""

    def __init__(self, message: str, code: str = "MAISUSHI_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class NotFoundError(MaiSushiError):
    """Resource not found."""

    def __init__(self, resource: str, identifier=None):
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} with ID {identifier} not found"
        super().__init__(message, f"{resource.upper()}_NOT_FOUND")

class ValidationError(MaiSushiError):
    """Invalid input data."""

    def __init__(self, message: str, field: str = None):
        self.field = field
        code = f"INVALID_{field.upper()}" if field else "VALIDATION_ERROR"
        super().__init__(message, code)


class InsufficientPointsError(MaiSushiError):
    """Not enough points for the operation."""

    def __init__(self, current: int, required: int):
        self.current = current
        self.required = required
        message = f"Insufficient points. Current: {current}, Required: {required}"
        super().__init__(message, "INSUFFICIENT_POINTS")


class DuplicateError(MaiSushiError):
    """Resource already exists."""

    def __init__(self, resource: str, identifier=None):
        message = f"{resource} already exists"
        if identifier:
            message = f"{resource} for {identifier} already exists"
        super().__init__(message, "DUPLICATE_ENTRY")


class LedgerWriteError(MaiSushiError):
    """
    The balance update and its history row could not be committed together.

    Nothing was granted or deducted; the caller must surface the failure
    instead of reporting points as moved.
    """

    def __init__(self, user_id: str, points: int, original_error: Exception = None):
        self.user_id = user_id
        self.points = points
        self.original_error = original_error
        message = f"Points ledger write failed for user {user_id} ({points:+d} pts)"
        super().__init__(message, "LEDGER_WRITE_FAILED")


class GrantedButUnclaimedError(MaiSushiError):
    """
    Points were deducted for a reward but the claim row was not written.

    Requires manual reconciliation: the deduction is committed and stays.
    """

    def __init__(self, user_id: str, reward_id: str, points: int, redemption_code: str = None):
        self.user_id = user_id
        self.reward_id = reward_id
        self.points = points
        self.redemption_code = redemption_code
        message = (
            f"Deducted {points} pts from user {user_id} for reward {reward_id} "
            f"but the claim was not recorded"
        )
        super().__init__(message, "GRANTED_BUT_UNCLAIMED")


class ConfigurationError(MaiSushiError):
    """Application configuration error."""

    def __init__(self, message: str):
        super().__init__(message, "CONFIGURATION_ERROR")
