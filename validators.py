from typing import Any, Optional

from errors import ValidationError

# Largest value a SQLite INTEGER column can hold
MAX_ID = 2**63 - 1


class IdValidator:
    """Checks for the identifiers accepted by the ledger and the stores."""

    @staticmethod
    def positive_id(value: Any, label: str = "id") -> int:
        # bool is an int subclass; True must not pass as id 1
        if isinstance(value, bool):
            raise ValidationError(f"{label} must be a positive integer.")
        if isinstance(value, str):
            value = value.strip()
            if not value.isdigit():
                raise ValidationError(f"{label} must be a positive integer.")
            value = int(value)
        if not isinstance(value, int) or value <= 0:
            raise ValidationError(f"{label} must be a positive integer.")
        if value > MAX_ID:
            raise ValidationError(f"{label} is out of range.")
        return value

    @staticmethod
    def membership_id(value: Optional[str]) -> str:
        if value is None:
            raise ValidationError("Membership id is required.")
        cleaned = str(value).strip()
        if not cleaned:
            raise ValidationError("Membership id is required.")
        return cleaned


class TextValidator:
    """Basic checks for catalog and member text fields."""

    @staticmethod
    def required(text: Optional[str], label: str) -> str:
        if text is None or not text.strip():
            raise ValidationError(f"{label} is required.")
        return text.strip()

    @staticmethod
    def digits_only(text: Optional[str]) -> Optional[str]:
        """Strip everything but digits (CPF and phone are stored unmasked)."""
        if text is None:
            return None
        cleaned = "".join(ch for ch in text if ch.isdigit())
        return cleaned or None

    @staticmethod
    def copies(value: Any, label: str = "total_copies") -> int:
        if isinstance(value, bool) or not isinstance(value, int) or value < 0 or value > MAX_ID:
            raise ValidationError(f"{label} must be a non-negative integer.")
        return value
