from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import update

from conftest import seed_profile
from startronics.domain.lifecycle.statuses import Role
from startronics.domain.payments.schemas import CheckoutConfirmRequest, SavedCardCreate
from startronics.domain.quotes.schemas import QuoteItemInput
from startronics.domain.repairs.db_models import RepairRequest
from startronics.domain.repairs.schemas import RepairRequestCreate
from startronics.domain.views import service as views_service


def _payload(device_type: str) -> RepairRequestCreate:
    return RepairRequestCreate(device_type=device_type, issue_description=f"{device_type} is broken")


async def _age(async_session_maker, request_id, minutes: int) -> None:
    async with async_session_maker() as session:
        await session.execute(
            update(RepairRequest)
            .where(RepairRequest.id == request_id)
            .values(created_at=datetime.now(tz=timezone.utc) - timedelta(minutes=minutes))
        )
        await session.commit()


@pytest.mark.anyio
async def test_customer_views(lifecycle, async_session_maker):
    customer = await seed_profile(async_session_maker, Role.customer)
    admin = await seed_profile(async_session_maker, Role.admin)
    technician = await seed_profile(async_session_maker, Role.technician)

    older = await lifecycle.create_repair_request(customer, _payload("phone"))
    newer = await lifecycle.create_repair_request(customer, _payload("laptop"))
    await _age(async_session_maker, older.id, 30)
    await _age(async_session_maker, newer.id, 5)

    await lifecycle.approve_request(admin, older.id, technician_id=technician.user_id)
    await lifecycle.technician_accept(technician, older.id)
    quote = await lifecycle.issue_bill(
        technician, older.id, [QuoteItemInput(description="Screen", amount=Decimal("99.50"))]
    )
    await lifecycle.add_card(
        customer, SavedCardCreate(card_number="4111111111111111", holder_name="Asha", expiry="01/30")
    )

    async with async_session_maker() as session:
        requests = await views_service.customer_requests(session, customer.user_id)
        dashboard = await views_service.customer_dashboard(session, customer.user_id)
        awaiting = await views_service.customer_quotes(session, customer.user_id, "sent")

    assert [view.id for view in requests] == [newer.id, older.id]
    assert requests[0].latest_quote is None
    assert requests[1].latest_quote.id == quote.id
    assert requests[1].latest_quote.breakdown.items[0].amount == Decimal("99.50")
    assert requests[1].devices.type == "phone"
    assert dashboard.pending_requests == 1
    assert dashboard.completed_requests == 1
    assert dashboard.bills_awaiting_payment == 1
    assert [item.id for item in awaiting] == [quote.id]

    await lifecycle.confirm_payment(
        customer, quote.id, CheckoutConfirmRequest(amount=Decimal("99.50"), currency="INR", method="netbanking")
    )

    async with async_session_maker() as session:
        overview = await views_service.customer_overview(session, customer.user_id)

    assert overview.dashboard.bills_awaiting_payment == 0
    assert len(overview.payments) == 1
    assert overview.payments[0].quote.status == "accepted"
    assert overview.payments[0].quote.request_title == older.title
    assert overview.cards[0].is_default is True


@pytest.mark.anyio
async def test_technician_views(lifecycle, async_session_maker):
    customer = await seed_profile(async_session_maker, Role.customer)
    admin = await seed_profile(async_session_maker, Role.admin)
    technician = await seed_profile(async_session_maker, Role.technician)

    open_request = await lifecycle.create_repair_request(customer, _payload("watch"))
    claimed = await lifecycle.create_repair_request(customer, _payload("camera"))
    assigned = await lifecycle.create_repair_request(customer, _payload("console"))
    await lifecycle.claim_request(technician, claimed.id)
    await lifecycle.approve_request(admin, assigned.id, technician_id=technician.user_id)
    await lifecycle.technician_accept(technician, assigned.id)
    await lifecycle.issue_bill(
        technician, assigned.id, [QuoteItemInput(description="Fan", amount=Decimal("30"))]
    )

    async with async_session_maker() as session:
        pool = await views_service.technician_open_pool(session)
        mine = await views_service.technician_assigned(session, technician.user_id)
        summary = await views_service.technician_summary(session, technician.user_id)
        paid = await views_service.technician_quotes(session, technician.user_id, "accepted")

    assert [item.id for item in pool] == [open_request.id]
    assert {item.id for item in mine} == {claimed.id, assigned.id}
    assert summary.assigned == 2
    assert summary.open == 1
    assert summary.bills_pending == 1
    assert summary.bills_paid == 0
    assert paid == []


@pytest.mark.anyio
async def test_admin_views_include_names(lifecycle, async_session_maker):
    customer = await seed_profile(async_session_maker, Role.customer, "Asha Rao")
    admin = await seed_profile(async_session_maker, Role.admin)
    technician = await seed_profile(async_session_maker, Role.technician, "Ravi Kumar")

    first = await lifecycle.create_repair_request(customer, _payload("phone"))
    second = await lifecycle.create_repair_request(customer, _payload("tablet"))
    await _age(async_session_maker, first.id, 10)
    await lifecycle.approve_request(admin, first.id, technician_id=technician.user_id)

    async with async_session_maker() as session:
        everything = await views_service.admin_requests(session)
        approved = await views_service.admin_requests(session, "approved")
        technicians = await views_service.admin_technicians(session)

    assert [item.id for item in everything] == [second.id, first.id]
    assert everything[1].customer_name == "Asha Rao"
    assert everything[1].technician_name == "Ravi Kumar"
    assert everything[0].technician_name is None
    assert [item.id for item in approved] == [first.id]
    assert [item.display_name for item in technicians] == ["Ravi Kumar"]
