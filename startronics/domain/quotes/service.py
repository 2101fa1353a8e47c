from __future__ import annotations

import uuid
from typing import Iterable

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from startronics.domain.errors import InvalidState, NotFound, ValidationError
from startronics.domain.lifecycle import statuses
from startronics.domain.lifecycle.statuses import LifecycleAction, ensure_quote_transition
from startronics.domain.quotes.db_models import Quote, QuoteItem
from startronics.domain.quotes.schemas import (
    QuoteBreakdown,
    QuoteItemInput,
    QuoteItemResponse,
    QuoteResponse,
)
from startronics.shared.money import to_cents

MAX_QUOTE_TOTAL_CENTS = 2_000_000_000


def normalize_items(items: Iterable[QuoteItemInput]) -> list[tuple[str, int]]:
    """Drop rows without a description or a positive finite amount.

    Returns (description, amount_cents) pairs in submission order. Raises
    ValidationError when nothing billable remains.
    """
    normalized: list[tuple[str, int]] = []
    for item in items:
        description = (item.description or "").strip()
        cents = to_cents(item.amount)
        if not description or cents is None or cents <= 0:
            continue
        normalized.append((description, cents))
    if not normalized:
        raise ValidationError(detail="Add at least one item with a description and a positive amount")
    total = sum(cents for _, cents in normalized)
    if total <= 0:
        raise ValidationError(detail="Bill total must be greater than zero")
    if total > MAX_QUOTE_TOTAL_CENTS:
        raise ValidationError(detail="Bill total is too large")
    return normalized


def _build_items(normalized: list[tuple[str, int]]) -> list[QuoteItem]:
    return [
        QuoteItem(position=position, description=description, amount_cents=cents)
        for position, (description, cents) in enumerate(normalized)
    ]


async def get_quote(session: AsyncSession, quote_id: uuid.UUID) -> Quote:
    result = await session.execute(
        select(Quote)
        .where(Quote.id == quote_id)
        .options(selectinload(Quote.items))
        .execution_options(populate_existing=True)
        .limit(1)
    )
    quote = result.scalar_one_or_none()
    if quote is None:
        raise NotFound(detail="Quote not found")
    return quote


async def create_quote(
    session: AsyncSession,
    *,
    repair_request_id: uuid.UUID,
    technician_id: uuid.UUID,
    normalized: list[tuple[str, int]],
    currency: str,
    notes: str | None = None,
) -> Quote:
    quote = Quote(
        repair_request_id=repair_request_id,
        technician_id=technician_id,
        amount_cents=sum(cents for _, cents in normalized),
        currency=currency,
        notes=(notes or "").strip() or None,
        status=statuses.QUOTE_SENT,
        items=_build_items(normalized),
    )
    session.add(quote)
    await session.flush()
    return await get_quote(session, quote.id)


async def edit_quote(
    session: AsyncSession,
    technician_id: uuid.UUID,
    quote_id: uuid.UUID,
    items: Iterable[QuoteItemInput],
    notes: str | None = None,
) -> Quote:
    quote = await get_quote(session, quote_id)
    if quote.technician_id != technician_id:
        raise NotFound(detail="Quote not found")
    transition = ensure_quote_transition(LifecycleAction.edit_bill, quote.status)
    normalized = normalize_items(items)

    result = await session.execute(
        update(Quote)
        .where(Quote.id == quote.id, Quote.status == quote.status)
        .values(
            amount_cents=sum(cents for _, cents in normalized),
            notes=(notes or "").strip() or None,
            status=transition.target,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise InvalidState(detail="Quote is no longer editable")

    quote.items.clear()
    await session.flush()
    quote.items.extend(_build_items(normalized))
    await session.flush()
    return await get_quote(session, quote.id)


async def mark_accepted(session: AsyncSession, quote: Quote) -> None:
    """Flip sent -> accepted; zero affected rows means someone paid first."""
    transition = ensure_quote_transition(LifecycleAction.confirm_payment, quote.status)
    result = await session.execute(
        update(Quote)
        .where(Quote.id == quote.id, Quote.status == quote.status)
        .values(status=transition.target)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise InvalidState(detail="Quote has already been paid")


async def list_quotes_for_technician(
    session: AsyncSession, technician_id: uuid.UUID, status: str | None = None
) -> list[Quote]:
    stmt = (
        select(Quote)
        .where(Quote.technician_id == technician_id)
        .options(selectinload(Quote.items))
        .order_by(Quote.created_at.desc(), Quote.id.desc())
    )
    if status:
        stmt = stmt.where(Quote.status == status)
    result = await session.execute(stmt)
    return list(result.scalars().all())


def quote_to_response(quote: Quote) -> QuoteResponse:
    return QuoteResponse(
        id=quote.id,
        repair_request_id=quote.repair_request_id,
        technician_id=quote.technician_id,
        amount=quote.amount,
        currency=quote.currency,
        notes=quote.notes,
        status=quote.status,
        breakdown=QuoteBreakdown(
            items=[QuoteItemResponse(description=item.description, amount=item.amount) for item in quote.items],
            notes=quote.notes,
        ),
        created_at=quote.created_at,
        updated_at=quote.updated_at,
    )
