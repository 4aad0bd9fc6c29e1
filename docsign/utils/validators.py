"""Validation utilities for uploads and signature payloads."""

import re
from typing import Optional

_DATA_URL_PATTERN = re.compile(r"^data:image/[a-zA-Z0-9.+-]+;base64,[A-Za-z0-9+/=\s]+$")
_SHARE_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{8,64}$")

PDF_CONTENT_TYPES = ("application/pdf", "application/x-pdf")


def validate_pdf_upload(filename: Optional[str], content_type: Optional[str]) -> bool:
    """Accept only PDF uploads, judged by content type or file extension."""
    if not filename or not isinstance(filename, str):
        return False

    if content_type and content_type.split(";")[0].strip().lower() in PDF_CONTENT_TYPES:
        return True
    return filename.lower().endswith(".pdf")


def validate_upload_size(size: int, max_bytes: int) -> bool:
    """Validate upload size (non-empty and within the cap)."""
    return 0 < size <= max_bytes


def validate_data_url(value: str) -> bool:
    """Validate a base64 image data URL (data:image/png;base64,...)."""
    if not value or not isinstance(value, str):
        return False
    return bool(_DATA_URL_PATTERN.match(value))


def validate_share_id(share_id: str) -> bool:
    """Validate share id format."""
    if not share_id or not isinstance(share_id, str):
        return False
    return bool(_SHARE_ID_PATTERN.match(share_id))


def sanitize_string(value: str, max_length: Optional[int] = None) -> str:
    """Sanitize string input."""
    if not isinstance(value, str):
        value = str(value)
    sanitized = value.strip()
    if max_length:
        sanitized = sanitized[:max_length]
    return sanitized
