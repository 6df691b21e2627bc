"""
Utility modules for the Mai Sushi backend.
"""
from .logging_config import setup_logging, get_logger
from .errors import (
    ErrorCode,
    error_response,
    service_failure,
    bad_request,
    not_found,
    internal_error
)
from .exceptions import (
    MaiSushiError,
    NotFoundError,
    ValidationError,
    InsufficientPointsError,
    DuplicateError,
    LedgerWriteError,
    GrantedButUnclaimedError,
    ConfigurationError
)
