"""
Pydantic Schemas for Input Validation

Every station (waiter tablet, kitchen display, cashier) hands raw input to
the managers; these schemas are the single place where it is checked.
Managers translate pydantic errors into ``tableflow.core.ValidationError``.
"""

from datetime import date as date_type, time as time_type
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from tableflow.core.exceptions import ValidationError
from tableflow.status import PaymentMethod


# =============================================================================
# ORDER SCHEMAS
# =============================================================================

class OrderItemCreate(BaseModel):
    """Single line in a new order."""
    model_config = ConfigDict(str_strip_whitespace=True)

    menu_item_id: str = Field(..., min_length=1, examples=["menu-42"])
    name: str = Field(..., min_length=1, max_length=100, examples=["Paella"])
    price: Decimal = Field(..., ge=0, examples=["14.50"])
    quantity: int = Field(default=1, ge=1, le=99, examples=[2])
    notes: Optional[str] = Field(None, max_length=200)


class OrderCreate(BaseModel):
    """Request schema for creating a new order."""
    model_config = ConfigDict(str_strip_whitespace=True)

    table_id: str = Field(..., min_length=1)
    server: str = Field(..., examples=["Lucia"])
    items: List[OrderItemCreate] = Field(..., min_length=1)
    notes: Optional[str] = Field(None, max_length=500)

    @field_validator("server")
    @classmethod
    def validate_server(cls, v: str) -> str:
        if not v:
            raise ValueError("Server must not be blank")
        return v


class ItemQuantityUpdate(BaseModel):
    quantity: int = Field(..., ge=1, le=99)


# =============================================================================
# RESERVATION SCHEMAS
# =============================================================================

class ReservationCreate(BaseModel):
    """Request schema for booking a table."""
    model_config = ConfigDict(str_strip_whitespace=True)

    table_id: str = Field(..., min_length=1)
    customer_name: str = Field(..., min_length=1, max_length=100, examples=["Ana Ruiz"])
    people: int = Field(..., ge=1, le=50)
    date: date_type
    time: time_type
    contact: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = Field(None, max_length=500)


# =============================================================================
# PAYMENT SCHEMAS
# =============================================================================

class PaymentRequest(BaseModel):
    """Amounts entered at the cashier station."""

    method: PaymentMethod
    subtotal: Decimal = Field(..., ge=0)
    tip_amount: Decimal = Field(default=Decimal("0"), ge=0)
    received_amount: Optional[Decimal] = Field(default=None, ge=0)


# =============================================================================
# HELPERS
# =============================================================================

def validate_input(schema: type[BaseModel], **data) -> BaseModel:
    """
    Build ``schema`` from keyword data.

    Raises:
        ValidationError: With one message per failing field
    """
    try:
        return schema(**data)
    except PydanticValidationError as e:
        problems = [
            f"{'.'.join(str(p) for p in err['loc']) or 'input'}: {err['msg']}"
            for err in e.errors()
        ]
        raise ValidationError("; ".join(problems), {"errors": problems}) from e
