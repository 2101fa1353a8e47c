import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from startronics.api.auth import Identity, require_technician
from startronics.dependencies import get_lifecycle
from startronics.domain.lifecycle.coordinator import LifecycleCoordinator
from startronics.domain.quotes import service as quotes_service
from startronics.domain.quotes.schemas import EditBillRequest, IssueBillRequest, QuoteResponse
from startronics.domain.repairs.schemas import ReasonBody, RepairRequestResponse, TechnicianNotesBody
from startronics.domain.views import service as views_service
from startronics.domain.views.schemas import TechnicianSummary
from startronics.infra.db import get_db_session

router = APIRouter(prefix="/v1/technician", tags=["technician"])


@router.get("/requests", response_model=list[RepairRequestResponse])
async def assigned_requests(
    identity: Identity = Depends(require_technician),
    session: AsyncSession = Depends(get_db_session),
) -> list[RepairRequestResponse]:
    return await views_service.technician_assigned(session, identity.user_id)


@router.get("/requests/open", response_model=list[RepairRequestResponse])
async def open_requests(
    identity: Identity = Depends(require_technician),
    session: AsyncSession = Depends(get_db_session),
) -> list[RepairRequestResponse]:
    return await views_service.technician_open_pool(session)


@router.get("/quotes", response_model=list[QuoteResponse])
async def my_quotes(
    status_filter: str | None = Query(None, alias="status"),
    identity: Identity = Depends(require_technician),
    session: AsyncSession = Depends(get_db_session),
) -> list[QuoteResponse]:
    return await views_service.technician_quotes(session, identity.user_id, status_filter)


@router.get("/summary", response_model=TechnicianSummary)
async def summary(
    identity: Identity = Depends(require_technician),
    session: AsyncSession = Depends(get_db_session),
) -> TechnicianSummary:
    return await views_service.technician_summary(session, identity.user_id)


@router.post("/requests/{request_id}/claim", response_model=RepairRequestResponse)
async def claim(
    request_id: uuid.UUID,
    identity: Identity = Depends(require_technician),
    lifecycle: LifecycleCoordinator = Depends(get_lifecycle),
) -> RepairRequestResponse:
    repair_request = await lifecycle.claim_request(identity.actor, request_id)
    return RepairRequestResponse.model_validate(repair_request)


@router.post("/requests/{request_id}/accept", response_model=RepairRequestResponse)
async def accept(
    request_id: uuid.UUID,
    payload: TechnicianNotesBody | None = None,
    identity: Identity = Depends(require_technician),
    lifecycle: LifecycleCoordinator = Depends(get_lifecycle),
) -> RepairRequestResponse:
    notes = payload.notes if payload else None
    repair_request = await lifecycle.technician_accept(identity.actor, request_id, notes)
    return RepairRequestResponse.model_validate(repair_request)


@router.post("/requests/{request_id}/reject", response_model=RepairRequestResponse)
async def reject(
    request_id: uuid.UUID,
    payload: ReasonBody,
    identity: Identity = Depends(require_technician),
    lifecycle: LifecycleCoordinator = Depends(get_lifecycle),
) -> RepairRequestResponse:
    repair_request = await lifecycle.technician_reject(identity.actor, request_id, payload.reason)
    return RepairRequestResponse.model_validate(repair_request)


@router.post("/requests/{request_id}/cancel", response_model=RepairRequestResponse)
async def cancel(
    request_id: uuid.UUID,
    payload: ReasonBody,
    identity: Identity = Depends(require_technician),
    lifecycle: LifecycleCoordinator = Depends(get_lifecycle),
) -> RepairRequestResponse:
    repair_request = await lifecycle.technician_cancel(identity.actor, request_id, payload.reason)
    return RepairRequestResponse.model_validate(repair_request)


@router.post("/requests/{request_id}/start", response_model=RepairRequestResponse)
async def start(
    request_id: uuid.UUID,
    identity: Identity = Depends(require_technician),
    lifecycle: LifecycleCoordinator = Depends(get_lifecycle),
) -> RepairRequestResponse:
    repair_request = await lifecycle.start_work(identity.actor, request_id)
    return RepairRequestResponse.model_validate(repair_request)


@router.post(
    "/requests/{request_id}/bill",
    response_model=QuoteResponse,
    status_code=status.HTTP_201_CREATED,
)
async def issue_bill(
    request_id: uuid.UUID,
    payload: IssueBillRequest,
    identity: Identity = Depends(require_technician),
    lifecycle: LifecycleCoordinator = Depends(get_lifecycle),
) -> QuoteResponse:
    quote = await lifecycle.issue_bill(
        identity.actor, request_id, payload.items, notes=payload.notes, currency=payload.currency
    )
    return quotes_service.quote_to_response(quote)


@router.patch("/quotes/{quote_id}", response_model=QuoteResponse)
async def edit_bill(
    quote_id: uuid.UUID,
    payload: EditBillRequest,
    identity: Identity = Depends(require_technician),
    lifecycle: LifecycleCoordinator = Depends(get_lifecycle),
) -> QuoteResponse:
    quote = await lifecycle.edit_bill(identity.actor, quote_id, payload.items, notes=payload.notes)
    return quotes_service.quote_to_response(quote)
