from .api_responses import APIResponse
from .error_messages import ErrorMessages
from .timezone_utils import TimezoneUtils

__all__ = [
    "APIResponse",
    "ErrorMessages",
    "TimezoneUtils",
]
