"""
Base Schema Classes for Pydantic Models

RULE: All response schemas that use `from_attributes=True` MUST inherit from
BaseResponseSchema. Money fields are Decimal and dump as 2dp strings in JSON
mode, never as floats.
"""

from decimal import Decimal
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer

from gstbook.core.money import format_money


# Decimal rendered as a fixed 2dp string in JSON output
MoneyOut = Annotated[Decimal, PlainSerializer(format_money, return_type=str, when_used="json")]

# Input amounts: strictly positive, at most 2 decimal places
PositiveMoney = Annotated[Decimal, Field(gt=0, max_digits=14, decimal_places=2)]


class BaseResponseSchema(BaseModel):
    """
    Base class for all response schemas that read from ORM models.

    Usage:
        class InvoiceResponse(BaseResponseSchema):
            id: UUID
            invoice_number: str
            total_amount: MoneyOut
    """
    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


class BaseCreateSchema(BaseModel):
    """
    Base class for create/input schemas.

    These schemas accept string UUIDs from the client and convert to UUID
    objects. Unknown fields are ignored.
    """
    model_config = ConfigDict(
        extra='ignore',
        use_enum_values=True,
    )


class BaseUpdateSchema(BaseModel):
    """
    Base class for update/patch schemas.

    All fields are optional; only fields the client sent are applied.
    """
    model_config = ConfigDict(
        extra='ignore',
        use_enum_values=True,
    )


def dump(schema: type, obj: object) -> dict:
    """Serialize an ORM object through a response schema into JSON-ready data."""
    return schema.model_validate(obj).model_dump(mode="json")
