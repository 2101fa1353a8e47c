import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from startronics.domain.lifecycle.statuses import PaymentMethod


class CardDetails(BaseModel):
    card_number: str = Field(default="", max_length=32)
    holder_name: str = Field(default="", max_length=255)
    expiry: str = Field(default="", max_length=8)
    cvv: str = Field(default="", max_length=4)


class CheckoutConfirmRequest(BaseModel):
    amount: Decimal
    currency: str = Field(min_length=3, max_length=8)
    method: PaymentMethod = PaymentMethod.card
    card: CardDetails | None = None
    saved_card_id: uuid.UUID | None = None
    upi_id: str | None = Field(default=None, max_length=255)
    save_card: bool = False

    @field_validator("currency", mode="before")
    @classmethod
    def normalize_currency(cls, value):
        if isinstance(value, str):
            return value.strip().upper()
        return value


class SavedCardCreate(BaseModel):
    card_number: str = Field(max_length=32)
    holder_name: str = Field(max_length=255)
    expiry: str = Field(max_length=8)


class PaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    quote_id: uuid.UUID
    amount: Decimal
    currency: str
    provider: str
    method: str
    status: str
    captured_at: datetime | None = None
    created_at: datetime


class SavedCardResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    card_last4: str
    card_brand: str
    card_holder_name: str
    expiry_month: str
    expiry_year: str
    is_default: bool
    created_at: datetime


class CheckoutResponse(BaseModel):
    payment: PaymentResponse
    saved_card: SavedCardResponse | None = None
