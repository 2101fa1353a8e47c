"""Read-only projections of lifecycle state, one set per role.

Nothing here writes. Lists are newest-first by creation time unless the
function says otherwise.
"""

from __future__ import annotations

import uuid
from typing import Iterable

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased, selectinload

from startronics.domain.lifecycle import statuses
from startronics.domain.payments.db_models import Payment
from startronics.domain.payments.schemas import SavedCardResponse
from startronics.domain.payments import service as payments_service
from startronics.domain.profiles import service as profiles_service
from startronics.domain.profiles.db_models import UserProfile
from startronics.domain.quotes import service as quotes_service
from startronics.domain.quotes.db_models import Quote
from startronics.domain.quotes.schemas import QuoteResponse
from startronics.domain.repairs import service as repairs_service
from startronics.domain.repairs.db_models import RepairRequest
from startronics.domain.repairs.schemas import RepairRequestResponse
from startronics.domain.stories import service as stories_service
from startronics.domain.stories.schemas import FeaturedStoryResponse
from startronics.domain.views.schemas import (
    AdminRequestView,
    CustomerDashboard,
    CustomerOverview,
    CustomerPaymentView,
    CustomerRequestView,
    QuoteSummary,
    TechnicianOption,
    TechnicianSummary,
)


async def _latest_quotes(session: AsyncSession, request_ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, Quote]:
    ids = list(request_ids)
    if not ids:
        return {}
    result = await session.execute(
        select(Quote)
        .where(Quote.repair_request_id.in_(ids))
        .options(selectinload(Quote.items))
        .order_by(Quote.created_at.desc(), Quote.id.desc())
    )
    latest: dict[uuid.UUID, Quote] = {}
    for quote in result.scalars().all():
        latest.setdefault(quote.repair_request_id, quote)
    return latest


async def _count(session: AsyncSession, model, *conditions) -> int:
    result = await session.execute(select(func.count()).select_from(model).where(*conditions))
    return int(result.scalar_one())


async def customer_requests(session: AsyncSession, user_id: uuid.UUID) -> list[CustomerRequestView]:
    requests = await repairs_service.list_requests_for_user(session, user_id)
    latest = await _latest_quotes(session, (request.id for request in requests))
    views = []
    for request in requests:
        quote = latest.get(request.id)
        view = CustomerRequestView.model_validate(request)
        if quote is not None:
            view = view.model_copy(update={"latest_quote": quotes_service.quote_to_response(quote)})
        views.append(view)
    return views


async def customer_quotes(
    session: AsyncSession, user_id: uuid.UUID, status: str | None = None
) -> list[QuoteResponse]:
    stmt = (
        select(Quote)
        .join(RepairRequest, RepairRequest.id == Quote.repair_request_id)
        .where(RepairRequest.user_id == user_id)
        .options(selectinload(Quote.items))
        .order_by(Quote.created_at.desc(), Quote.id.desc())
    )
    if status:
        stmt = stmt.where(Quote.status == status)
    result = await session.execute(stmt)
    return [quotes_service.quote_to_response(quote) for quote in result.scalars().all()]


async def customer_payments(session: AsyncSession, user_id: uuid.UUID) -> list[CustomerPaymentView]:
    result = await session.execute(
        select(Payment, Quote.repair_request_id, Quote.status, RepairRequest.title)
        .join(Quote, Quote.id == Payment.quote_id)
        .join(RepairRequest, RepairRequest.id == Quote.repair_request_id)
        .where(Payment.user_id == user_id)
        .order_by(Payment.created_at.desc(), Payment.id.desc())
    )
    views = []
    for payment, repair_request_id, quote_status, title in result.all():
        view = CustomerPaymentView.model_validate(payment).model_copy(
            update={
                "quote": QuoteSummary(
                    id=payment.quote_id,
                    repair_request_id=repair_request_id,
                    request_title=title,
                    status=quote_status,
                )
            }
        )
        views.append(view)
    return views


async def customer_cards(session: AsyncSession, user_id: uuid.UUID) -> list[SavedCardResponse]:
    """Default card first, then newest."""
    cards = await payments_service.list_cards(session, user_id)
    return [SavedCardResponse.model_validate(card) for card in cards]


async def customer_dashboard(session: AsyncSession, user_id: uuid.UUID) -> CustomerDashboard:
    pending = await _count(
        session,
        RepairRequest,
        RepairRequest.user_id == user_id,
        RepairRequest.status == statuses.REPAIR_PENDING,
    )
    completed = await _count(
        session,
        RepairRequest,
        RepairRequest.user_id == user_id,
        RepairRequest.status == statuses.REPAIR_COMPLETED,
    )
    result = await session.execute(
        select(func.count())
        .select_from(Quote)
        .join(RepairRequest, RepairRequest.id == Quote.repair_request_id)
        .where(RepairRequest.user_id == user_id, Quote.status == statuses.QUOTE_SENT)
    )
    awaiting = int(result.scalar_one())
    return CustomerDashboard(
        pending_requests=pending,
        completed_requests=completed,
        bills_awaiting_payment=awaiting,
    )


async def customer_overview(session: AsyncSession, user_id: uuid.UUID) -> CustomerOverview:
    return CustomerOverview(
        requests=await customer_requests(session, user_id),
        payments=await customer_payments(session, user_id),
        cards=await customer_cards(session, user_id),
        dashboard=await customer_dashboard(session, user_id),
    )


async def technician_assigned(session: AsyncSession, technician_id: uuid.UUID) -> list[RepairRequestResponse]:
    result = await session.execute(
        select(RepairRequest)
        .where(RepairRequest.assigned_technician_id == technician_id)
        .options(selectinload(RepairRequest.device))
        .order_by(RepairRequest.created_at.desc(), RepairRequest.id.desc())
    )
    return [RepairRequestResponse.model_validate(request) for request in result.scalars().all()]


async def technician_open_pool(session: AsyncSession) -> list[RepairRequestResponse]:
    result = await session.execute(
        select(RepairRequest)
        .where(
            RepairRequest.status == statuses.REPAIR_PENDING,
            RepairRequest.assigned_technician_id.is_(None),
        )
        .options(selectinload(RepairRequest.device))
        .order_by(RepairRequest.created_at.desc(), RepairRequest.id.desc())
    )
    return [RepairRequestResponse.model_validate(request) for request in result.scalars().all()]


async def technician_quotes(
    session: AsyncSession, technician_id: uuid.UUID, status: str | None = None
) -> list[QuoteResponse]:
    quotes = await quotes_service.list_quotes_for_technician(session, technician_id, status)
    return [quotes_service.quote_to_response(quote) for quote in quotes]


async def technician_summary(session: AsyncSession, technician_id: uuid.UUID) -> TechnicianSummary:
    return TechnicianSummary(
        assigned=await _count(session, RepairRequest, RepairRequest.assigned_technician_id == technician_id),
        open=await _count(
            session,
            RepairRequest,
            RepairRequest.status == statuses.REPAIR_PENDING,
            RepairRequest.assigned_technician_id.is_(None),
        ),
        bills_pending=await _count(
            session, Quote, Quote.technician_id == technician_id, Quote.status == statuses.QUOTE_SENT
        ),
        bills_paid=await _count(
            session, Quote, Quote.technician_id == technician_id, Quote.status == statuses.QUOTE_ACCEPTED
        ),
    )


async def admin_requests(session: AsyncSession, status: str | None = None) -> list[AdminRequestView]:
    customer = aliased(UserProfile)
    technician = aliased(UserProfile)
    stmt = (
        select(RepairRequest, customer.display_name, technician.display_name)
        .outerjoin(customer, customer.id == RepairRequest.user_id)
        .outerjoin(technician, technician.id == RepairRequest.assigned_technician_id)
        .options(selectinload(RepairRequest.device))
        .order_by(RepairRequest.created_at.desc(), RepairRequest.id.desc())
    )
    if status:
        stmt = stmt.where(RepairRequest.status == status)
    result = await session.execute(stmt)
    return [
        AdminRequestView.model_validate(request).model_copy(
            update={"customer_name": customer_name, "technician_name": technician_name}
        )
        for request, customer_name, technician_name in result.all()
    ]


async def admin_technicians(session: AsyncSession) -> list[TechnicianOption]:
    technicians = await profiles_service.list_technicians(session)
    return [TechnicianOption.model_validate(profile) for profile in technicians]


async def featured_stories(session: AsyncSession, limit: int) -> list[FeaturedStoryResponse]:
    stories = await stories_service.list_featured(session, limit)
    return [FeaturedStoryResponse.model_validate(story) for story in stories]


async def legacy_list_requests(session: AsyncSession, user_id: uuid.UUID) -> list[RepairRequestResponse]:
    requests = await repairs_service.list_requests_for_user(session, user_id)
    return [RepairRequestResponse.model_validate(request) for request in requests]


async def legacy_get_request(
    session: AsyncSession, user_id: uuid.UUID, request_id: uuid.UUID
) -> RepairRequestResponse:
    request = await repairs_service.get_owned_request(session, user_id, request_id)
    return RepairRequestResponse.model_validate(request)
