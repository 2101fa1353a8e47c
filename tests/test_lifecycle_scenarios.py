import uuid
from decimal import Decimal

import pytest
from sqlalchemy import select

from conftest import seed_profile
from startronics.domain.errors import InvalidState, NotFound, PermissionDenied, ValidationError
from startronics.domain.lifecycle.statuses import Role, Urgency
from startronics.domain.payments import service as payments_service
from startronics.domain.payments.db_models import Payment
from startronics.domain.payments.schemas import CardDetails, CheckoutConfirmRequest
from startronics.domain.quotes.db_models import Quote
from startronics.domain.quotes.schemas import QuoteItemInput
from startronics.domain.repairs.db_models import Device, RepairRequest
from startronics.domain.repairs.schemas import RepairRequestCreate

VALID_CARD = CardDetails(
    card_number="4111 1111 1111 1111",
    holder_name="Asha Rao",
    expiry="08/29",
    cvv="123",
)


def _request_payload(**overrides) -> RepairRequestCreate:
    data = {"deviceType": "phone", "issueDescription": "Screen cracked after a fall", "urgency": "high"}
    data.update(overrides)
    return RepairRequestCreate.model_validate(data)


def _items(*pairs) -> list[QuoteItemInput]:
    return [QuoteItemInput(description=description, amount=Decimal(amount)) for description, amount in pairs]


async def _accepted_request(lifecycle, customer, admin, technician):
    repair_request = await lifecycle.create_repair_request(customer, _request_payload())
    await lifecycle.approve_request(admin, repair_request.id, technician_id=technician.user_id)
    return await lifecycle.technician_accept(technician, repair_request.id)


async def _issued_quote(lifecycle, customer, admin, technician):
    repair_request = await _accepted_request(lifecycle, customer, admin, technician)
    return await lifecycle.issue_bill(
        technician, repair_request.id, _items(("Screen", "100.00"), ("Labor", "50.00"))
    )


@pytest.mark.anyio
async def test_request_to_bill_flow(lifecycle, async_session_maker):
    customer = await seed_profile(async_session_maker, Role.customer, "Asha")
    admin = await seed_profile(async_session_maker, Role.admin, "Ops")
    technician = await seed_profile(async_session_maker, Role.technician, "Ravi")

    created = await lifecycle.create_repair_request(customer, _request_payload())
    assert created.status == "pending"
    assert created.urgency == Urgency.high.value
    assert created.device.type == "phone"
    assert created.title == "phone - Screen cracked after a fall"

    approved = await lifecycle.approve_request(
        admin, created.id, admin_notes="Looks fine", technician_id=technician.user_id
    )
    assert approved.status == "approved"
    assert approved.assigned_technician_id == technician.user_id

    accepted = await lifecycle.technician_accept(technician, created.id, notes="On it")
    assert accepted.status == "accepted"

    quote = await lifecycle.issue_bill(
        technician, created.id, _items(("Screen", "100.00"), ("Labor", "50.00"))
    )
    assert quote.amount == Decimal("150.00")
    assert quote.status == "sent"
    assert quote.currency == "INR"
    assert [item.description for item in quote.items] == ["Screen", "Labor"]

    async with async_session_maker() as session:
        stored = await session.get(RepairRequest, created.id)
        assert stored.status == "completed"


@pytest.mark.anyio
async def test_edit_bill_recalculates_until_paid(lifecycle, async_session_maker):
    customer = await seed_profile(async_session_maker, Role.customer)
    admin = await seed_profile(async_session_maker, Role.admin)
    technician = await seed_profile(async_session_maker, Role.technician)
    quote = await _issued_quote(lifecycle, customer, admin, technician)

    edited = await lifecycle.edit_bill(
        technician,
        quote.id,
        _items(("Screen", "120.00"), ("Labor", "40.00"), ("Glass", "15.50")),
        notes="Added glass",
    )
    assert edited.amount == Decimal("175.50")
    assert len(edited.items) == 3
    assert edited.notes == "Added glass"

    await lifecycle.confirm_payment(
        customer,
        quote.id,
        CheckoutConfirmRequest(amount=Decimal("175.50"), currency="INR", card=VALID_CARD),
    )

    with pytest.raises(InvalidState):
        await lifecycle.edit_bill(technician, quote.id, _items(("Screen", "10.00")))


@pytest.mark.anyio
async def test_confirm_payment_is_single_use(lifecycle, async_session_maker):
    customer = await seed_profile(async_session_maker, Role.customer)
    admin = await seed_profile(async_session_maker, Role.admin)
    technician = await seed_profile(async_session_maker, Role.technician)
    quote = await _issued_quote(lifecycle, customer, admin, technician)
    payload = CheckoutConfirmRequest(amount=Decimal("150.00"), currency="INR", card=VALID_CARD)

    result = await lifecycle.confirm_payment(customer, quote.id, payload)
    assert result.payment.status == "succeeded"
    assert result.payment.amount == Decimal("150.00")
    assert result.payment.provider == "simulated"
    assert result.saved_card is None

    with pytest.raises(InvalidState):
        await lifecycle.confirm_payment(customer, quote.id, payload)

    async with async_session_maker() as session:
        assert await payments_service.count_payments_for_quote(session, quote.id) == 1
        stored = await session.get(Quote, quote.id)
        assert stored.status == "accepted"


@pytest.mark.anyio
async def test_confirm_payment_requires_matching_amount(lifecycle, async_session_maker):
    customer = await seed_profile(async_session_maker, Role.customer)
    admin = await seed_profile(async_session_maker, Role.admin)
    technician = await seed_profile(async_session_maker, Role.technician)
    quote = await _issued_quote(lifecycle, customer, admin, technician)

    with pytest.raises(ValidationError):
        await lifecycle.confirm_payment(
            customer,
            quote.id,
            CheckoutConfirmRequest(amount=Decimal("149.99"), currency="INR", card=VALID_CARD),
        )
    with pytest.raises(ValidationError):
        await lifecycle.confirm_payment(
            customer,
            quote.id,
            CheckoutConfirmRequest(amount=Decimal("150.00"), currency="USD", card=VALID_CARD),
        )

    async with async_session_maker() as session:
        stored = await session.get(Quote, quote.id)
        assert stored.status == "sent"
        assert await payments_service.count_payments_for_quote(session, quote.id) == 0


@pytest.mark.anyio
async def test_other_customer_cannot_pay_quote(lifecycle, async_session_maker):
    customer = await seed_profile(async_session_maker, Role.customer)
    stranger = await seed_profile(async_session_maker, Role.customer)
    admin = await seed_profile(async_session_maker, Role.admin)
    technician = await seed_profile(async_session_maker, Role.technician)
    quote = await _issued_quote(lifecycle, customer, admin, technician)

    with pytest.raises(NotFound):
        await lifecycle.confirm_payment(
            stranger,
            quote.id,
            CheckoutConfirmRequest(amount=Decimal("150.00"), currency="INR", card=VALID_CARD),
        )


@pytest.mark.anyio
async def test_payment_with_save_card_stores_last4_only(lifecycle, async_session_maker):
    customer = await seed_profile(async_session_maker, Role.customer)
    admin = await seed_profile(async_session_maker, Role.admin)
    technician = await seed_profile(async_session_maker, Role.technician)
    quote = await _issued_quote(lifecycle, customer, admin, technician)

    result = await lifecycle.confirm_payment(
        customer,
        quote.id,
        CheckoutConfirmRequest(amount=Decimal("150.00"), currency="inr", card=VALID_CARD, save_card=True),
    )
    card = result.saved_card
    assert card is not None
    assert card.card_last4 == "1111"
    assert card.card_brand == "visa"
    assert card.expiry_month == "08"
    assert card.expiry_year == "29"
    assert card.is_default is True


@pytest.mark.anyio
async def test_technician_actions_require_assignment(lifecycle, async_session_maker):
    customer = await seed_profile(async_session_maker, Role.customer)
    admin = await seed_profile(async_session_maker, Role.admin)
    assigned = await seed_profile(async_session_maker, Role.technician)
    other = await seed_profile(async_session_maker, Role.technician)

    repair_request = await lifecycle.create_repair_request(customer, _request_payload())
    await lifecycle.approve_request(admin, repair_request.id, technician_id=assigned.user_id)

    with pytest.raises(NotFound):
        await lifecycle.technician_accept(other, repair_request.id)
    with pytest.raises(InvalidState):
        await lifecycle.start_work(assigned, repair_request.id)

    await lifecycle.technician_accept(assigned, repair_request.id)
    in_progress = await lifecycle.start_work(assigned, repair_request.id)
    assert in_progress.status == "in_progress"

    with pytest.raises(ValidationError):
        await lifecycle.technician_cancel(assigned, repair_request.id, "   ")
    cancelled = await lifecycle.technician_cancel(assigned, repair_request.id, "Parts unavailable")
    assert cancelled.status == "cancelled"
    assert cancelled.technician_notes == "Parts unavailable"


@pytest.mark.anyio
async def test_technician_reject_allows_reapproval(lifecycle, async_session_maker):
    customer = await seed_profile(async_session_maker, Role.customer)
    admin = await seed_profile(async_session_maker, Role.admin)
    first = await seed_profile(async_session_maker, Role.technician)
    second = await seed_profile(async_session_maker, Role.technician)

    repair_request = await lifecycle.create_repair_request(customer, _request_payload())
    await lifecycle.approve_request(admin, repair_request.id, technician_id=first.user_id)
    rejected = await lifecycle.technician_reject(first, repair_request.id, "Not my speciality")
    assert rejected.status == "technician_rejected"

    reapproved = await lifecycle.approve_request(admin, repair_request.id, technician_id=second.user_id)
    assert reapproved.status == "approved"
    assert reapproved.assigned_technician_id == second.user_id


@pytest.mark.anyio
async def test_admin_approval_validates_technician(lifecycle, async_session_maker):
    customer = await seed_profile(async_session_maker, Role.customer)
    admin = await seed_profile(async_session_maker, Role.admin)

    repair_request = await lifecycle.create_repair_request(customer, _request_payload())
    with pytest.raises(ValidationError):
        await lifecycle.approve_request(admin, repair_request.id, technician_id=customer.user_id)
    with pytest.raises(ValidationError):
        await lifecycle.reject_request(admin, repair_request.id, "")

    rejected = await lifecycle.reject_request(admin, repair_request.id, "Duplicate request")
    assert rejected.status == "rejected"
    assert rejected.admin_notes == "Duplicate request"
    with pytest.raises(InvalidState):
        await lifecycle.approve_request(admin, repair_request.id)


@pytest.mark.anyio
async def test_customer_edit_and_delete_only_while_pending(lifecycle, async_session_maker):
    customer = await seed_profile(async_session_maker, Role.customer)
    stranger = await seed_profile(async_session_maker, Role.customer)
    admin = await seed_profile(async_session_maker, Role.admin)

    repair_request = await lifecycle.create_repair_request(customer, _request_payload())
    updated = await lifecycle.update_repair_request(
        customer, repair_request.id, description="Battery drains fast", urgency=Urgency.low
    )
    assert updated.description == "Battery drains fast"
    assert updated.title == "phone - Battery drains fast"
    assert updated.urgency == "low"

    with pytest.raises(NotFound):
        await lifecycle.delete_repair_request(stranger, repair_request.id)

    await lifecycle.approve_request(admin, repair_request.id)
    with pytest.raises(InvalidState):
        await lifecycle.update_repair_request(customer, repair_request.id, description="Changed")
    with pytest.raises(InvalidState):
        await lifecycle.delete_repair_request(customer, repair_request.id)

    second = await lifecycle.create_repair_request(customer, _request_payload())
    await lifecycle.delete_repair_request(customer, second.id)
    async with async_session_maker() as session:
        assert await session.get(RepairRequest, second.id) is None
        assert await session.get(Device, second.device_id) is None
        assert await session.get(Device, repair_request.device_id) is not None


@pytest.mark.anyio
async def test_wrong_role_is_denied_before_touching_state(lifecycle, async_session_maker, metrics_client):
    customer = await seed_profile(async_session_maker, Role.customer)

    repair_request = await lifecycle.create_repair_request(customer, _request_payload())
    with pytest.raises(PermissionDenied):
        await lifecycle.approve_request(customer, repair_request.id)
    with pytest.raises(PermissionDenied):
        await lifecycle.claim_request(customer, repair_request.id)

    async with async_session_maker() as session:
        stored = await session.get(RepairRequest, repair_request.id)
        assert stored.status == "pending"
        assert stored.assigned_technician_id is None

    body, _ = metrics_client.render()
    assert b'outcome="denied"' in body


@pytest.mark.anyio
async def test_payment_rows_reference_accepted_quotes_only(lifecycle, async_session_maker):
    customer = await seed_profile(async_session_maker, Role.customer)
    admin = await seed_profile(async_session_maker, Role.admin)
    technician = await seed_profile(async_session_maker, Role.technician)
    paid = await _issued_quote(lifecycle, customer, admin, technician)
    await _issued_quote(lifecycle, customer, admin, technician)

    await lifecycle.confirm_payment(
        customer,
        paid.id,
        CheckoutConfirmRequest(amount=Decimal("150.00"), currency="INR", method="upi", upi_id="asha@okbank"),
    )

    async with async_session_maker() as session:
        rows = (await session.execute(select(Payment.quote_id, Quote.status).join(Quote))).all()
        assert rows == [(paid.id, "accepted")]
        statuses = (await session.execute(select(Quote.status).order_by(Quote.status))).scalars().all()
        assert statuses == ["accepted", "sent"]


@pytest.mark.anyio
async def test_unknown_request_is_not_found(lifecycle, async_session_maker):
    admin = await seed_profile(async_session_maker, Role.admin)
    with pytest.raises(NotFound):
        await lifecycle.approve_request(admin, uuid.uuid4())
