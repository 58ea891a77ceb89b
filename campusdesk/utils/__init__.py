"""
Utility functions
"""
from campusdesk.utils.logger import setup_logger, get_logger
from campusdesk.utils.validators import (
    sanitize_input,
    is_ocr_eligible,
    ALLOWED_MIME_TYPES,
)

__all__ = [
    "setup_logger",
    "get_logger",
    "sanitize_input",
    "is_ocr_eligible",
    "ALLOWED_MIME_TYPES",
]
