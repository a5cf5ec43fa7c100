"""
Logging
=======
Structured logging setup shared by every module of the sign-out core.
"""

from .structured import (
    JSONFormatter,
    setup_logging,
    get_logger,
    add_request_context,
    pass_event_dict,
    request_id_var,
    service_name_var,
)

__all__ = [
    "JSONFormatter",
    "setup_logging",
    "get_logger",
    "add_request_context",
    "pass_event_dict",
    "request_id_var",
    "service_name_var",
]
