"""
Utilities module - Typed exceptions and date helpers.
"""

from common.utils.exceptions import (
    APIException,
    UnauthorizedException,
    ForbiddenException,
    NotFoundException,
    ConflictException,
    ValidationException,
    RemoteCallException,
    ServiceUnavailableException,
)
from common.utils.dates import (
    today_string,
    yesterday_string,
    shift_date,
    parse_date,
    utc_now_iso,
    parse_timestamp,
    local_date_string,
)

__all__ = [
    "APIException",
    "UnauthorizedException",
    "ForbiddenException",
    "NotFoundException",
    "ConflictException",
    "ValidationException",
    "RemoteCallException",
    "ServiceUnavailableException",
    "today_string",
    "yesterday_string",
    "shift_date",
    "parse_date",
    "utc_now_iso",
    "parse_timestamp",
    "local_date_string",
]
