"""
Input validation utilities
"""
from typing import Optional

ALLOWED_MIME_TYPES = frozenset({
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "application/pdf",
    "video/mp4",
    "video/webm",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
})


def sanitize_input(text: Optional[str], max_length: int = 10000) -> str:
    """
    Sanitize user input

    Args:
        text: Input text to sanitize
        max_length: Maximum allowed length

    Returns:
        Sanitized text
    """
    if text is None:
        return ""

    # Remove null bytes
    text = text.replace('\x00', '')

    # Truncate to max length
    if len(text) > max_length:
        text = text[:max_length]

    return text.strip()


def is_ocr_eligible(mime_type: str) -> bool:
    """Images and PDFs carry text worth extracting"""
    return mime_type.startswith("image/") or mime_type == "application/pdf"
