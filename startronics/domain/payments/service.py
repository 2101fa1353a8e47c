from __future__ import annotations

import re
import uuid
from dataclasses import dataclass

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from startronics.domain.errors import NotFound, ValidationError
from startronics.domain.lifecycle import statuses
from startronics.domain.lifecycle.statuses import CardBrand, PaymentMethod
from startronics.domain.payments.db_models import Payment, SavedCard
from startronics.domain.payments.schemas import CardDetails, CheckoutConfirmRequest, SavedCardCreate
from startronics.domain.quotes.db_models import Quote
from startronics.domain.repairs.db_models import RepairRequest
from startronics.infra.db import utcnow
from startronics.shared.money import normalize_currency, to_cents

CARD_NUMBER_DIGITS = 16
EXPIRY_RE = re.compile(r"^(\d{2})/(\d{2})$")
CVV_RE = re.compile(r"^\d{3,4}$")
_WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class ParsedCard:
    last4: str
    brand: CardBrand
    holder_name: str
    expiry_month: str
    expiry_year: str


def detect_brand(card_number: str) -> CardBrand:
    first_digit = card_number[:1]
    if first_digit == "4":
        return CardBrand.visa
    if first_digit == "5":
        return CardBrand.mastercard
    if first_digit == "3":
        return CardBrand.amex
    return CardBrand.unknown


def parse_card(
    card_number: str, holder_name: str, expiry: str, cvv: str | None = None, *, require_cvv: bool = True
) -> ParsedCard:
    digits = _WHITESPACE_RE.sub("", card_number or "")
    if len(digits) != CARD_NUMBER_DIGITS or not digits.isdigit():
        raise ValidationError(detail="Please enter a valid 16-digit card number")
    holder = (holder_name or "").strip()
    if not holder:
        raise ValidationError(detail="Please enter cardholder name")
    match = EXPIRY_RE.match((expiry or "").strip())
    if not match or not 1 <= int(match.group(1)) <= 12:
        raise ValidationError(detail="Please enter expiry as MM/YY")
    if require_cvv and not CVV_RE.match((cvv or "").strip()):
        raise ValidationError(detail="Please enter valid CVV")
    return ParsedCard(
        last4=digits[-4:],
        brand=detect_brand(digits),
        holder_name=holder,
        expiry_month=match.group(1),
        expiry_year=match.group(2),
    )


def validate_checkout(payload: CheckoutConfirmRequest) -> ParsedCard | None:
    """Check the entered payment details; returns the parsed card when a new one was entered."""
    method = PaymentMethod(payload.method)
    if method == PaymentMethod.card:
        if payload.saved_card_id is not None:
            return None
        card = payload.card or CardDetails()
        return parse_card(card.card_number, card.holder_name, card.expiry, card.cvv)
    if method == PaymentMethod.upi:
        if not payload.upi_id or "@" not in payload.upi_id:
            raise ValidationError(detail="Please enter a valid UPI ID")
    return None


async def get_payable_quote(session: AsyncSession, user_id: uuid.UUID, quote_id: uuid.UUID) -> Quote:
    result = await session.execute(
        select(Quote)
        .join(RepairRequest, RepairRequest.id == Quote.repair_request_id)
        .where(Quote.id == quote_id, RepairRequest.user_id == user_id)
        .options(selectinload(Quote.items))
        .execution_options(populate_existing=True)
        .limit(1)
    )
    quote = result.scalar_one_or_none()
    if quote is None:
        raise NotFound(detail="Quote not found")
    return quote


def ensure_amount_matches(quote: Quote, payload: CheckoutConfirmRequest) -> None:
    if to_cents(payload.amount) != quote.amount_cents:
        raise ValidationError(detail="Payment amount does not match the bill")
    currency = normalize_currency(payload.currency)
    if currency is None:
        raise ValidationError(detail="Currency is required")
    if currency != quote.currency.upper():
        raise ValidationError(detail="Payment currency does not match the bill")


async def create_payment(
    session: AsyncSession, quote: Quote, user_id: uuid.UUID, method: PaymentMethod
) -> Payment:
    payment = Payment(
        user_id=user_id,
        quote_id=quote.id,
        amount_cents=quote.amount_cents,
        currency=quote.currency,
        provider=statuses.PAYMENT_PROVIDER_SIMULATED,
        provider_ref=f"sim_{uuid.uuid4().hex[:24]}",
        method=PaymentMethod(method).value,
        status=statuses.PAYMENT_SUCCEEDED,
        captured_at=utcnow(),
    )
    session.add(payment)
    await session.flush()
    return payment


async def count_payments_for_quote(session: AsyncSession, quote_id: uuid.UUID) -> int:
    result = await session.execute(
        select(func.count()).select_from(Payment).where(Payment.quote_id == quote_id)
    )
    return int(result.scalar_one())


async def get_card(session: AsyncSession, user_id: uuid.UUID, card_id: uuid.UUID) -> SavedCard:
    result = await session.execute(
        select(SavedCard)
        .where(SavedCard.id == card_id, SavedCard.user_id == user_id)
        .execution_options(populate_existing=True)
        .limit(1)
    )
    card = result.scalar_one_or_none()
    if card is None:
        raise NotFound(detail="Saved card not found")
    return card


async def _lock_cards(session: AsyncSession, user_id: uuid.UUID) -> list[SavedCard]:
    result = await session.execute(
        select(SavedCard)
        .where(SavedCard.user_id == user_id)
        .order_by(SavedCard.created_at.desc(), SavedCard.id.desc())
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def list_cards(session: AsyncSession, user_id: uuid.UUID) -> list[SavedCard]:
    result = await session.execute(
        select(SavedCard)
        .where(SavedCard.user_id == user_id)
        .order_by(SavedCard.is_default.desc(), SavedCard.created_at.desc(), SavedCard.id.desc())
    )
    return list(result.scalars().all())


async def add_card(session: AsyncSession, user_id: uuid.UUID, parsed: ParsedCard) -> SavedCard:
    existing = await _lock_cards(session, user_id)
    card = SavedCard(
        user_id=user_id,
        card_last4=parsed.last4,
        card_brand=parsed.brand.value,
        card_holder_name=parsed.holder_name,
        expiry_month=parsed.expiry_month,
        expiry_year=parsed.expiry_year,
        is_default=not existing,
    )
    session.add(card)
    await session.flush()
    return card


def parse_new_card(payload: SavedCardCreate) -> ParsedCard:
    return parse_card(payload.card_number, payload.holder_name, payload.expiry, require_cvv=False)


async def delete_card(session: AsyncSession, user_id: uuid.UUID, card_id: uuid.UUID) -> None:
    cards = await _lock_cards(session, user_id)
    target = next((card for card in cards if card.id == card_id), None)
    if target is None:
        raise NotFound(detail="Saved card not found")
    was_default = target.is_default
    await session.delete(target)
    await session.flush()
    if was_default:
        remaining = [card for card in cards if card.id != card_id]
        if remaining:
            remaining[0].is_default = True
            await session.flush()


async def set_default_card(session: AsyncSession, user_id: uuid.UUID, card_id: uuid.UUID) -> SavedCard:
    cards = await _lock_cards(session, user_id)
    if not any(card.id == card_id for card in cards):
        raise NotFound(detail="Saved card not found")
    await session.execute(
        update(SavedCard)
        .where(SavedCard.user_id == user_id, SavedCard.id != card_id, SavedCard.is_default.is_(True))
        .values(is_default=False)
        .execution_options(synchronize_session=False)
    )
    await session.execute(
        update(SavedCard)
        .where(SavedCard.user_id == user_id, SavedCard.id == card_id)
        .values(is_default=True)
        .execution_options(synchronize_session=False)
    )
    return await get_card(session, user_id, card_id)
