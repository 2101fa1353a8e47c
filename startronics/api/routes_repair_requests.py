"""Unauthenticated repair-request endpoints kept for existing clients.

Request bodies use camelCase keys and every rejection, including store
failures, is answered with 400.
"""

import json
import uuid

import pydantic
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from startronics.api.problem_details import PROBLEM_TYPE_VALIDATION, problem_details, validation_errors
from startronics.dependencies import get_lifecycle
from startronics.domain.errors import UpstreamFailure, ValidationError
from startronics.domain.lifecycle.coordinator import LifecycleCoordinator
from startronics.domain.lifecycle.policies import Actor
from startronics.domain.lifecycle.statuses import Role
from startronics.domain.repairs.schemas import LegacyRepairRequestCreate, RepairRequestResponse
from startronics.domain.views import service as views_service
from startronics.infra.db import get_db_session

router = APIRouter(tags=["repair-requests"])


@router.post(
    "/repair-requests",
    status_code=status.HTTP_201_CREATED,
    response_model=RepairRequestResponse,
)
async def create_repair_request(
    request: Request,
    lifecycle: LifecycleCoordinator = Depends(get_lifecycle),
):
    try:
        raw = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return problem_details(
            request,
            status=status.HTTP_400_BAD_REQUEST,
            title="Invalid request data",
            detail="Request body must be JSON",
            type_=PROBLEM_TYPE_VALIDATION,
        )

    try:
        payload = LegacyRepairRequestCreate.model_validate(raw)
    except pydantic.ValidationError as exc:
        return problem_details(
            request,
            status=status.HTTP_400_BAD_REQUEST,
            title="Invalid request data",
            detail="Invalid request data",
            errors=validation_errors(exc.errors()),
            type_=PROBLEM_TYPE_VALIDATION,
        )

    actor = Actor(user_id=payload.user_id, role=Role.customer)
    try:
        repair_request = await lifecycle.create_repair_request(actor, payload)
    except (UpstreamFailure, ValidationError) as exc:
        return problem_details(
            request,
            status=status.HTTP_400_BAD_REQUEST,
            title=exc.title,
            detail=exc.detail,
            type_=exc.type,
        )
    return RepairRequestResponse.model_validate(repair_request)


def _parse_id(value: str, field: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError as exc:
        raise ValidationError(
            detail="Invalid request data",
            errors=[{"field": field, "message": "Input should be a valid UUID"}],
        ) from exc


@router.get("/repair-requests/{user_id}", response_model=list[RepairRequestResponse])
async def list_repair_requests(
    user_id: str,
    session: AsyncSession = Depends(get_db_session),
) -> list[RepairRequestResponse]:
    return await views_service.legacy_list_requests(session, _parse_id(user_id, "user_id"))


@router.get("/repair-requests/{user_id}/{request_id}", response_model=RepairRequestResponse)
async def get_repair_request(
    user_id: str,
    request_id: str,
    session: AsyncSession = Depends(get_db_session),
) -> RepairRequestResponse:
    return await views_service.legacy_get_request(
        session, _parse_id(user_id, "user_id"), _parse_id(request_id, "request_id")
    )
