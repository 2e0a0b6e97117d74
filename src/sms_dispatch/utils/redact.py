"""
Module: redact.py
Description: Helpers for keeping passenger data out of log lines.
"""

from typing import Optional


def mask_phone(phone_number: Optional[str]) -> Optional[str]:
    """Mask all but the last four digits of a phone number."""
    if not phone_number:
        return phone_number
    if len(phone_number) <= 4:
        return "*" * len(phone_number)
    return "*" * (len(phone_number) - 4) + phone_number[-4:]


def preview_message(message: Optional[str], length: int = 50) -> Optional[str]:
    """Truncate message text for logging."""
    if not message or len(message) <= length:
        return message
    return message[:length] + "..."
