"""
Utility modules for Subwatch.
"""
from subwatch.utils.logger import setup_logger
from subwatch.utils.formatting import format_display_name, format_bytes
from subwatch.utils.errors import ErrorCode, raise_error

__all__ = [
    "setup_logger",
    "format_display_name",
    "format_bytes",
    "ErrorCode",
    "raise_error",
]
