"""Data normalization utilities for contact fields."""

import re
from typing import Optional


def normalize_name(name: Optional[str]) -> Optional[str]:
    """
    Normalize name by stripping whitespace and collapsing multiple spaces.

    Returns:
        Cleaned name or None if empty
    """
    if not name:
        return None
    collapsed = " ".join(name.split())
    return collapsed or None


def normalize_email(email: Optional[str]) -> Optional[str]:
    """Normalize email to lowercase; None if empty."""
    if not email:
        return None
    cleaned = email.strip().lower()
    return cleaned or None


def normalize_phone(phone: Optional[str]) -> Optional[str]:
    """
    Normalize phone to digits, keeping a leading + for international numbers.

    Accepts the usual punctuation: "(11) 98765-4321" -> "11987654321",
    "+55 11 98765-4321" -> "+5511987654321".

    Raises:
        ValueError: If fewer than 8 or more than 15 digits remain
    """
    if not phone:
        return None

    cleaned = phone.strip()
    if not cleaned:
        return None

    prefix = "+" if cleaned.startswith("+") else ""
    digits = re.sub(r"\D", "", cleaned)

    if not 8 <= len(digits) <= 15:
        raise ValueError(f"Invalid phone number '{phone}'. Expected 8 to 15 digits.")

    return f"{prefix}{digits}"
