"""
Helpers for status and type columns stored as plain strings.

Statuses, currencies, payment methods and GST return types live in
VARCHAR columns holding UPPERCASE values. Services compare against the
str-Enum classes in gstbook.models; request schemas accept any casing and
normalise it before validation.
"""

from enum import Enum
from typing import Any, Optional, Set


def get_enum_value(value: Any) -> Optional[str]:
    """
    Safely get string value from an enum or string.

    Examples:
        >>> get_enum_value(InvoiceStatus.SENT)  # Pydantic input
        'SENT'
        >>> get_enum_value("SENT")  # Database value
        'SENT'
    """
    if value is None:
        return None
    if isinstance(value, Enum):
        return value.value
    return str(value)


# =============================================================================
# CASE NORMALIZATION FOR PYDANTIC SCHEMAS
# =============================================================================

def normalize_to_uppercase(value: Any, valid_values: Set[str]) -> Any:
    """
    Normalize a string value to UPPERCASE if it's a valid enum value.

    Examples:
        >>> normalize_to_uppercase('sent', {'DRAFT', 'SENT'})
        'SENT'
        >>> normalize_to_uppercase('invalid', {'DRAFT', 'SENT'})
        'invalid'  # Returns as-is for Pydantic to raise validation error
    """
    if value is None:
        return value
    if isinstance(value, str):
        upper_v = value.upper()
        if upper_v in valid_values:
            return upper_v
    return value


def create_uppercase_validator(field_name: str, valid_values: Set[str]) -> classmethod:
    """
    Create a Pydantic field_validator that normalizes values to UPPERCASE.

    Usage:
        class QuotationStatusUpdate(BaseModel):
            status: QuotationStatus

            _normalize_status = create_uppercase_validator('status', VALID_QUOTATION_STATUSES)
    """
    from pydantic import field_validator

    @field_validator(field_name, mode='before')
    @classmethod
    def validate(cls, v):
        return normalize_to_uppercase(v, valid_values)

    return validate


# =============================================================================
# PRE-DEFINED VALID VALUE SETS
# =============================================================================

VALID_CURRENCIES = {"BTN", "INR", "USD"}

VALID_QUOTATION_STATUSES = {
    "DRAFT", "SENT", "ACCEPTED", "REJECTED", "EXPIRED", "CONVERTED"
}

VALID_GST_RETURN_TYPES = {"MONTHLY", "QUARTERLY", "ANNUAL"}

VALID_PAYMENT_METHODS = {
    "CASH", "BANK_TRANSFER", "CHEQUE", "CARD", "UPI", "MOBILE_WALLET", "OTHER"
}
