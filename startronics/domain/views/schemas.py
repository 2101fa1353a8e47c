import uuid
from typing import List

from pydantic import BaseModel, ConfigDict

from startronics.domain.payments.schemas import PaymentResponse, SavedCardResponse
from startronics.domain.quotes.schemas import QuoteResponse
from startronics.domain.repairs.schemas import RepairRequestResponse


class CustomerRequestView(RepairRequestResponse):
    latest_quote: QuoteResponse | None = None


class QuoteSummary(BaseModel):
    id: uuid.UUID
    repair_request_id: uuid.UUID
    request_title: str | None = None
    status: str


class CustomerPaymentView(PaymentResponse):
    quote: QuoteSummary | None = None


class CustomerDashboard(BaseModel):
    pending_requests: int
    completed_requests: int
    bills_awaiting_payment: int


class CustomerOverview(BaseModel):
    requests: List[CustomerRequestView]
    payments: List[CustomerPaymentView]
    cards: List[SavedCardResponse]
    dashboard: CustomerDashboard


class TechnicianSummary(BaseModel):
    assigned: int
    open: int
    bills_pending: int
    bills_paid: int


class AdminRequestView(RepairRequestResponse):
    customer_name: str | None = None
    technician_name: str | None = None


class TechnicianOption(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    display_name: str | None = None
    email: str | None = None
