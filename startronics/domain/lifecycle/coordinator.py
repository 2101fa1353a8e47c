"""Repair lifecycle coordinator.

Every write in the repair workflow goes through :class:`LifecycleCoordinator`.
Each operation checks the caller's capability, validates the current state,
and applies the write together with its side effects inside a single database
transaction. Store failures surface as ``UpstreamFailure`` (``PaymentFailed``
for checkout) with the driver message passed through; nothing is retried.

The coordinator is built once at startup with the process-wide session factory
and handed to the API through ``AppServices``.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, Iterable, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from startronics.domain.errors import (
    ClaimConflict,
    DomainError,
    InvalidState,
    NotFound,
    PaymentFailed,
    PermissionDenied,
    UpstreamFailure,
    ValidationError,
)
from startronics.domain.lifecycle.policies import Actor, ensure_permitted
from startronics.domain.lifecycle.statuses import LifecycleAction, Urgency, ensure_quote_transition
from startronics.domain.payments import service as payments_service
from startronics.domain.payments.db_models import Payment, SavedCard
from startronics.domain.payments.schemas import CheckoutConfirmRequest, SavedCardCreate
from startronics.domain.quotes import service as quotes_service
from startronics.domain.quotes.db_models import Quote
from startronics.domain.quotes.schemas import QuoteItemInput
from startronics.domain.repairs import service as repairs_service
from startronics.domain.repairs.db_models import RepairRequest
from startronics.domain.repairs.schemas import RepairRequestCreate
from startronics.domain.stories import service as stories_service
from startronics.domain.stories.db_models import SuccessStory
from startronics.domain.stories.schemas import StoryCreate
from startronics.infra.metrics import Metrics
from startronics.infra.metrics import metrics as default_metrics
from startronics.shared.money import normalize_currency

logger = logging.getLogger(__name__)

T = TypeVar("T")

ENTITY_REPAIR_REQUEST = "repair_request"
ENTITY_QUOTE = "quote"
ENTITY_PAYMENT = "payment"
ENTITY_SAVED_CARD = "saved_card"
ENTITY_STORY = "success_story"

_OUTCOMES: tuple[tuple[type[DomainError], str], ...] = (
    (PaymentFailed, "payment_failed"),
    (UpstreamFailure, "upstream_failure"),
    (ClaimConflict, "conflict"),
    (InvalidState, "invalid_state"),
    (ValidationError, "validation_error"),
    (NotFound, "not_found"),
    (PermissionDenied, "denied"),
)


def _outcome(exc: DomainError) -> str:
    for error_type, label in _OUTCOMES:
        if isinstance(exc, error_type):
            return label
    return "error"


def _store_message(exc: SQLAlchemyError) -> str:
    original = getattr(exc, "orig", None)
    return str(original) if original is not None else str(exc)


@dataclass
class CheckoutResult:
    payment: Payment
    saved_card: SavedCard | None = None


class LifecycleCoordinator:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        metrics: Metrics | None = None,
        default_currency: str = "INR",
    ) -> None:
        self._session_factory = session_factory
        self._metrics = metrics or default_metrics
        self._default_currency = default_currency.upper()

    @asynccontextmanager
    async def _unit_of_work(
        self, failure: type[UpstreamFailure] = UpstreamFailure
    ) -> AsyncIterator[AsyncSession]:
        async with self._session_factory() as session:
            try:
                async with session.begin():
                    yield session
            except SQLAlchemyError as exc:
                logger.warning(
                    "lifecycle_store_failure",
                    extra={"extra": {"error_type": type(exc).__name__}},
                )
                raise failure(detail=_store_message(exc)) from exc

    async def _run(
        self,
        entity: str,
        action: LifecycleAction,
        actor: Actor,
        operation: Callable[[AsyncSession], Awaitable[T]],
        *,
        failure: type[UpstreamFailure] = UpstreamFailure,
    ) -> T:
        try:
            ensure_permitted(actor, action)
            async with self._unit_of_work(failure) as session:
                result = await operation(session)
        except DomainError as exc:
            self._metrics.record_transition(entity, action.value, _outcome(exc))
            raise
        self._metrics.record_transition(entity, action.value, "success")
        return result

    async def create_repair_request(self, actor: Actor, payload: RepairRequestCreate) -> RepairRequest:
        async def operation(session: AsyncSession) -> RepairRequest:
            return await repairs_service.create_repair_request(session, actor.user_id, payload)

        repair_request = await self._run(
            ENTITY_REPAIR_REQUEST, LifecycleAction.create_request, actor, operation
        )
        logger.info(
            "repair_request_created",
            extra={
                "extra": {
                    "repair_request_id": str(repair_request.id),
                    "urgency": repair_request.urgency,
                }
            },
        )
        return repair_request

    async def update_repair_request(
        self,
        actor: Actor,
        request_id: uuid.UUID,
        *,
        description: str | None = None,
        urgency: Urgency | None = None,
    ) -> RepairRequest:
        async def operation(session: AsyncSession) -> RepairRequest:
            return await repairs_service.update_request(
                session, actor.user_id, request_id, description=description, urgency=urgency
            )

        return await self._run(ENTITY_REPAIR_REQUEST, LifecycleAction.edit_request, actor, operation)

    async def delete_repair_request(self, actor: Actor, request_id: uuid.UUID) -> None:
        async def operation(session: AsyncSession) -> None:
            await repairs_service.delete_request(session, actor.user_id, request_id)

        await self._run(ENTITY_REPAIR_REQUEST, LifecycleAction.delete_request, actor, operation)
        logger.info("repair_request_deleted", extra={"extra": {"repair_request_id": str(request_id)}})

    async def approve_request(
        self,
        actor: Actor,
        request_id: uuid.UUID,
        *,
        admin_notes: str | None = None,
        technician_id: uuid.UUID | None = None,
    ) -> RepairRequest:
        async def operation(session: AsyncSession) -> RepairRequest:
            return await repairs_service.approve(
                session, request_id, admin_notes=admin_notes, technician_id=technician_id
            )

        repair_request = await self._run(ENTITY_REPAIR_REQUEST, LifecycleAction.approve, actor, operation)
        logger.info(
            "repair_request_approved",
            extra={
                "extra": {
                    "repair_request_id": str(request_id),
                    "assigned_technician_id": str(repair_request.assigned_technician_id)
                    if repair_request.assigned_technician_id
                    else None,
                }
            },
        )
        return repair_request

    async def reject_request(self, actor: Actor, request_id: uuid.UUID, reason: str | None) -> RepairRequest:
        async def operation(session: AsyncSession) -> RepairRequest:
            return await repairs_service.reject(session, request_id, reason)

        repair_request = await self._run(ENTITY_REPAIR_REQUEST, LifecycleAction.reject, actor, operation)
        logger.info("repair_request_rejected", extra={"extra": {"repair_request_id": str(request_id)}})
        return repair_request

    async def claim_request(self, actor: Actor, request_id: uuid.UUID) -> RepairRequest:
        async def operation(session: AsyncSession) -> RepairRequest:
            return await repairs_service.claim(session, request_id, actor.user_id)

        try:
            repair_request = await self._run(ENTITY_REPAIR_REQUEST, LifecycleAction.claim, actor, operation)
        except ClaimConflict:
            logger.info(
                "claim_conflict",
                extra={"extra": {"repair_request_id": str(request_id), "technician_id": str(actor.user_id)}},
            )
            raise
        logger.info(
            "repair_request_claimed",
            extra={"extra": {"repair_request_id": str(request_id), "technician_id": str(actor.user_id)}},
        )
        return repair_request

    async def _technician_step(
        self,
        actor: Actor,
        request_id: uuid.UUID,
        action: LifecycleAction,
        notes: str | None = None,
    ) -> RepairRequest:
        async def operation(session: AsyncSession) -> RepairRequest:
            return await repairs_service.technician_transition(
                session, actor.user_id, request_id, action, notes=notes
            )

        repair_request = await self._run(ENTITY_REPAIR_REQUEST, action, actor, operation)
        logger.info(
            "repair_request_status_changed",
            extra={
                "extra": {
                    "repair_request_id": str(request_id),
                    "action": action.value,
                    "status": repair_request.status,
                }
            },
        )
        return repair_request

    async def technician_accept(
        self, actor: Actor, request_id: uuid.UUID, notes: str | None = None
    ) -> RepairRequest:
        return await self._technician_step(actor, request_id, LifecycleAction.technician_accept, notes)

    async def technician_reject(self, actor: Actor, request_id: uuid.UUID, reason: str | None) -> RepairRequest:
        return await self._technician_step(actor, request_id, LifecycleAction.technician_reject, reason)

    async def technician_cancel(self, actor: Actor, request_id: uuid.UUID, reason: str | None) -> RepairRequest:
        return await self._technician_step(actor, request_id, LifecycleAction.technician_cancel, reason)

    async def start_work(self, actor: Actor, request_id: uuid.UUID) -> RepairRequest:
        return await self._technician_step(actor, request_id, LifecycleAction.start_work)

    async def issue_bill(
        self,
        actor: Actor,
        request_id: uuid.UUID,
        items: Iterable[QuoteItemInput],
        *,
        notes: str | None = None,
        currency: str | None = None,
    ) -> Quote:
        submitted = list(items)
        bill_currency = normalize_currency(self._default_currency if currency is None else currency)

        async def operation(session: AsyncSession) -> Quote:
            if bill_currency is None:
                raise ValidationError(detail="Currency must be a three-letter code")
            normalized = quotes_service.normalize_items(submitted)
            await repairs_service.mark_completed_by_bill(session, actor.user_id, request_id)
            return await quotes_service.create_quote(
                session,
                repair_request_id=request_id,
                technician_id=actor.user_id,
                normalized=normalized,
                currency=bill_currency,
                notes=notes,
            )

        quote = await self._run(ENTITY_QUOTE, LifecycleAction.issue_bill, actor, operation)
        logger.info(
            "quote_issued",
            extra={
                "extra": {
                    "quote_id": str(quote.id),
                    "repair_request_id": str(request_id),
                    "amount_cents": quote.amount_cents,
                    "item_count": len(quote.items),
                }
            },
        )
        return quote

    async def edit_bill(
        self,
        actor: Actor,
        quote_id: uuid.UUID,
        items: Iterable[QuoteItemInput],
        *,
        notes: str | None = None,
    ) -> Quote:
        submitted = list(items)

        async def operation(session: AsyncSession) -> Quote:
            return await quotes_service.edit_quote(session, actor.user_id, quote_id, submitted, notes)

        quote = await self._run(ENTITY_QUOTE, LifecycleAction.edit_bill, actor, operation)
        logger.info(
            "quote_edited",
            extra={"extra": {"quote_id": str(quote.id), "amount_cents": quote.amount_cents}},
        )
        return quote

    async def confirm_payment(
        self, actor: Actor, quote_id: uuid.UUID, payload: CheckoutConfirmRequest
    ) -> CheckoutResult:
        async def operation(session: AsyncSession) -> CheckoutResult:
            entered_card = payments_service.validate_checkout(payload)
            quote = await payments_service.get_payable_quote(session, actor.user_id, quote_id)
            ensure_quote_transition(LifecycleAction.confirm_payment, quote.status)
            payments_service.ensure_amount_matches(quote, payload)
            if payload.saved_card_id is not None:
                await payments_service.get_card(session, actor.user_id, payload.saved_card_id)

            await quotes_service.mark_accepted(session, quote)
            payment = await payments_service.create_payment(session, quote, actor.user_id, payload.method)

            saved_card = None
            if payload.save_card and entered_card is not None:
                saved_card = await payments_service.add_card(session, actor.user_id, entered_card)
            return CheckoutResult(payment=payment, saved_card=saved_card)

        try:
            result = await self._run(
                ENTITY_PAYMENT,
                LifecycleAction.confirm_payment,
                actor,
                operation,
                failure=PaymentFailed,
            )
        except DomainError as exc:
            self._metrics.record_payment(str(payload.method.value), _outcome(exc))
            raise
        self._metrics.record_payment(result.payment.method, "succeeded")
        logger.info(
            "payment_confirmed",
            extra={
                "extra": {
                    "payment_id": str(result.payment.id),
                    "quote_id": str(quote_id),
                    "amount_cents": result.payment.amount_cents,
                    "method": result.payment.method,
                    "card_saved": result.saved_card is not None,
                }
            },
        )
        return result

    async def add_card(self, actor: Actor, payload: SavedCardCreate) -> SavedCard:
        async def operation(session: AsyncSession) -> SavedCard:
            parsed = payments_service.parse_new_card(payload)
            return await payments_service.add_card(session, actor.user_id, parsed)

        return await self._run(ENTITY_SAVED_CARD, LifecycleAction.manage_cards, actor, operation)

    async def delete_card(self, actor: Actor, card_id: uuid.UUID) -> None:
        async def operation(session: AsyncSession) -> None:
            await payments_service.delete_card(session, actor.user_id, card_id)

        await self._run(ENTITY_SAVED_CARD, LifecycleAction.manage_cards, actor, operation)

    async def set_default_card(self, actor: Actor, card_id: uuid.UUID) -> SavedCard:
        async def operation(session: AsyncSession) -> SavedCard:
            return await payments_service.set_default_card(session, actor.user_id, card_id)

        return await self._run(ENTITY_SAVED_CARD, LifecycleAction.manage_cards, actor, operation)

    async def submit_story(self, actor: Actor, payload: StoryCreate) -> SuccessStory:
        async def operation(session: AsyncSession) -> SuccessStory:
            return await stories_service.submit_story(session, actor.user_id, payload)

        story = await self._run(ENTITY_STORY, LifecycleAction.submit_story, actor, operation)
        logger.info(
            "success_story_submitted",
            extra={"extra": {"story_id": str(story.id), "rating": story.rating}},
        )
        return story
