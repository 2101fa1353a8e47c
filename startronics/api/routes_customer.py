import uuid

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from startronics.api.auth import Identity, require_customer
from startronics.dependencies import get_lifecycle
from startronics.domain.lifecycle.coordinator import LifecycleCoordinator
from startronics.domain.payments.schemas import SavedCardCreate, SavedCardResponse
from startronics.domain.quotes.schemas import QuoteResponse
from startronics.domain.repairs.schemas import RepairRequestCreate, RepairRequestResponse, RepairRequestUpdate
from startronics.domain.views import service as views_service
from startronics.domain.views.schemas import (
    CustomerDashboard,
    CustomerOverview,
    CustomerPaymentView,
    CustomerRequestView,
)
from startronics.infra.db import get_db_session

router = APIRouter(tags=["customer"])


@router.get("/v1/me/overview", response_model=CustomerOverview)
async def overview(
    identity: Identity = Depends(require_customer),
    session: AsyncSession = Depends(get_db_session),
) -> CustomerOverview:
    return await views_service.customer_overview(session, identity.user_id)


@router.get("/v1/me/dashboard", response_model=CustomerDashboard)
async def dashboard(
    identity: Identity = Depends(require_customer),
    session: AsyncSession = Depends(get_db_session),
) -> CustomerDashboard:
    return await views_service.customer_dashboard(session, identity.user_id)


@router.get("/v1/me/repair-requests", response_model=list[CustomerRequestView])
async def list_my_requests(
    identity: Identity = Depends(require_customer),
    session: AsyncSession = Depends(get_db_session),
) -> list[CustomerRequestView]:
    return await views_service.customer_requests(session, identity.user_id)


@router.post(
    "/v1/me/repair-requests",
    response_model=RepairRequestResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_my_request(
    payload: RepairRequestCreate,
    identity: Identity = Depends(require_customer),
    lifecycle: LifecycleCoordinator = Depends(get_lifecycle),
) -> RepairRequestResponse:
    repair_request = await lifecycle.create_repair_request(identity.actor, payload)
    return RepairRequestResponse.model_validate(repair_request)


@router.patch("/v1/me/repair-requests/{request_id}", response_model=RepairRequestResponse)
async def update_my_request(
    request_id: uuid.UUID,
    payload: RepairRequestUpdate,
    identity: Identity = Depends(require_customer),
    lifecycle: LifecycleCoordinator = Depends(get_lifecycle),
) -> RepairRequestResponse:
    repair_request = await lifecycle.update_repair_request(
        identity.actor, request_id, description=payload.description, urgency=payload.urgency
    )
    return RepairRequestResponse.model_validate(repair_request)


@router.delete("/v1/me/repair-requests/{request_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_my_request(
    request_id: uuid.UUID,
    identity: Identity = Depends(require_customer),
    lifecycle: LifecycleCoordinator = Depends(get_lifecycle),
) -> Response:
    await lifecycle.delete_repair_request(identity.actor, request_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/v1/me/quotes", response_model=list[QuoteResponse])
async def list_my_quotes(
    status_filter: str | None = Query(None, alias="status"),
    identity: Identity = Depends(require_customer),
    session: AsyncSession = Depends(get_db_session),
) -> list[QuoteResponse]:
    return await views_service.customer_quotes(session, identity.user_id, status_filter)


@router.get("/v1/me/payments", response_model=list[CustomerPaymentView])
async def list_my_payments(
    identity: Identity = Depends(require_customer),
    session: AsyncSession = Depends(get_db_session),
) -> list[CustomerPaymentView]:
    return await views_service.customer_payments(session, identity.user_id)


@router.get("/v1/me/cards", response_model=list[SavedCardResponse])
async def list_my_cards(
    identity: Identity = Depends(require_customer),
    session: AsyncSession = Depends(get_db_session),
) -> list[SavedCardResponse]:
    return await views_service.customer_cards(session, identity.user_id)


@router.post("/v1/me/cards", response_model=SavedCardResponse, status_code=status.HTTP_201_CREATED)
async def add_my_card(
    payload: SavedCardCreate,
    identity: Identity = Depends(require_customer),
    lifecycle: LifecycleCoordinator = Depends(get_lifecycle),
) -> SavedCardResponse:
    card = await lifecycle.add_card(identity.actor, payload)
    return SavedCardResponse.model_validate(card)


@router.post("/v1/me/cards/{card_id}/default", response_model=SavedCardResponse)
async def set_my_default_card(
    card_id: uuid.UUID,
    identity: Identity = Depends(require_customer),
    lifecycle: LifecycleCoordinator = Depends(get_lifecycle),
) -> SavedCardResponse:
    card = await lifecycle.set_default_card(identity.actor, card_id)
    return SavedCardResponse.model_validate(card)


@router.delete("/v1/me/cards/{card_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_my_card(
    card_id: uuid.UUID,
    identity: Identity = Depends(require_customer),
    lifecycle: LifecycleCoordinator = Depends(get_lifecycle),
) -> Response:
    await lifecycle.delete_card(identity.actor, card_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
