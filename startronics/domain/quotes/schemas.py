import uuid
from datetime import datetime
from decimal import Decimal
from typing import List

from pydantic import BaseModel, Field, field_validator

MAX_QUOTE_ITEMS = 50


class QuoteItemInput(BaseModel):
    description: str = Field(default="", max_length=500)
    amount: Decimal | None = None


class IssueBillRequest(BaseModel):
    items: List[QuoteItemInput] = Field(min_length=1, max_length=MAX_QUOTE_ITEMS)
    notes: str | None = Field(default=None, max_length=2000)
    currency: str | None = Field(default=None, min_length=3, max_length=8)

    @field_validator("currency", mode="before")
    @classmethod
    def normalize_currency(cls, value):
        if isinstance(value, str):
            return value.strip().upper()
        return value


class EditBillRequest(BaseModel):
    items: List[QuoteItemInput] = Field(min_length=1, max_length=MAX_QUOTE_ITEMS)
    notes: str | None = Field(default=None, max_length=2000)


class QuoteItemResponse(BaseModel):
    description: str
    amount: Decimal


class QuoteBreakdown(BaseModel):
    items: List[QuoteItemResponse]
    notes: str | None = None


class QuoteResponse(BaseModel):
    id: uuid.UUID
    repair_request_id: uuid.UUID
    technician_id: uuid.UUID
    amount: Decimal
    currency: str
    notes: str | None = None
    status: str
    breakdown: QuoteBreakdown
    created_at: datetime
    updated_at: datetime
