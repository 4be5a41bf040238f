# Shared errors, correlation ids and logging setup
from .errors import ErrorCode, JournalServiceError, error_response

__all__ = [
    "ErrorCode",
    "JournalServiceError",
    "error_response",
]
