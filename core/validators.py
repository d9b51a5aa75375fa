"""
Input validation utilities for the hostel management API.
"""
import os
from pathlib import Path
from typing import Tuple, Optional

import config


def normalize_email(email: Optional[str]) -> str:
    """Lowercase and strip an email address; empty string for None."""
    return (email or "").strip().lower()


def is_institutional_email(email: Optional[str], domain: Optional[str] = None) -> bool:
    """
    Check that an email belongs to the institute domain.

    The local part must be non-empty and the address must end with
    ``@<domain>`` exactly (sub-domains such as ``@alumni.iiti.ac.in`` and
    look-alikes such as ``@iiti.ac.in.evil.com`` are rejected).

    Args:
        email: Address to check
        domain: Domain suffix; defaults to config.INSTITUTE_EMAIL_DOMAIN

    Returns:
        True if the address is institutional
    """
    email = normalize_email(email)
    domain = (domain or config.INSTITUTE_EMAIL_DOMAIN).strip().lstrip("@").lower()
    if not email or not domain or email.count("@") != 1:
        return False
    local_part, _, email_domain = email.partition("@")
    return bool(local_part) and email_domain == domain


def derive_roll_no(email: str) -> str:
    """
    Derive a student's roll number from their institute email.

    200101001@iiti.ac.in -> 200101001
    """
    email = normalize_email(email)
    local_part = email.split("@", 1)[0]
    if not local_part:
        raise ValueError("Email has no local part")
    return local_part


def sanitize_filename(filename: str) -> str:
    """
    Sanitize filename to prevent path traversal attacks.

    Args:
        filename: Original filename

    Returns:
        Sanitized filename safe for use
    """
    if not filename:
        raise ValueError("Filename cannot be empty")

    filename = os.path.basename(filename)

    # Keep alphanumerics, dots, dashes, underscores
    sanitized = "".join(
        char if char.isalnum() or char in "._-" else "_"
        for char in filename
    )

    if len(sanitized) > 255:
        sanitized = sanitized[:255]

    if not sanitized.strip("._"):
        raise ValueError("Filename became empty after sanitization")

    return sanitized


def validate_photo_extension(filename: str, allowed_extensions: set) -> bool:
    """
    Validate image file extension.

    Args:
        filename: Filename to check
        allowed_extensions: Set of allowed extensions (e.g., {".jpg", ".png"})

    Returns:
        True if extension is allowed
    """
    if not filename:
        return False
    return Path(filename).suffix.lower() in allowed_extensions


def validate_file_size(file_size: int, max_size_bytes: int) -> Tuple[bool, Optional[str]]:
    """
    Validate file size.

    Args:
        file_size: File size in bytes
        max_size_bytes: Maximum allowed size in bytes

    Returns:
        Tuple of (is_valid, error_message)
    """
    if file_size <= 0:
        return False, "File size must be greater than 0"

    if file_size > max_size_bytes:
        max_size_mb = max_size_bytes / (1024 * 1024)
        actual_size_mb = file_size / (1024 * 1024)
        return False, f"File too large: {actual_size_mb:.2f}MB (max: {max_size_mb:.2f}MB)"

    return True, None
