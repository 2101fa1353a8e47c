import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from startronics.api.auth import Identity, require_admin
from startronics.dependencies import get_lifecycle
from startronics.domain.lifecycle.coordinator import LifecycleCoordinator
from startronics.domain.repairs.schemas import ApproveRequestBody, ReasonBody, RepairRequestResponse
from startronics.domain.views import service as views_service
from startronics.domain.views.schemas import AdminRequestView, TechnicianOption
from startronics.infra.db import get_db_session

router = APIRouter(prefix="/v1/admin", tags=["admin"])


@router.get("/requests", response_model=list[AdminRequestView])
async def list_requests(
    status_filter: str | None = Query(None, alias="status"),
    identity: Identity = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
) -> list[AdminRequestView]:
    return await views_service.admin_requests(session, status_filter)


@router.get("/technicians", response_model=list[TechnicianOption])
async def list_technicians(
    identity: Identity = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
) -> list[TechnicianOption]:
    return await views_service.admin_technicians(session)


@router.post("/requests/{request_id}/approve", response_model=RepairRequestResponse)
async def approve(
    request_id: uuid.UUID,
    payload: ApproveRequestBody | None = None,
    identity: Identity = Depends(require_admin),
    lifecycle: LifecycleCoordinator = Depends(get_lifecycle),
) -> RepairRequestResponse:
    body = payload or ApproveRequestBody()
    repair_request = await lifecycle.approve_request(
        identity.actor, request_id, admin_notes=body.admin_notes, technician_id=body.technician_id
    )
    return RepairRequestResponse.model_validate(repair_request)


@router.post("/requests/{request_id}/reject", response_model=RepairRequestResponse)
async def reject(
    request_id: uuid.UUID,
    payload: ReasonBody,
    identity: Identity = Depends(require_admin),
    lifecycle: LifecycleCoordinator = Depends(get_lifecycle),
) -> RepairRequestResponse:
    repair_request = await lifecycle.reject_request(identity.actor, request_id, payload.reason)
    return RepairRequestResponse.model_validate(repair_request)
