from __future__ import annotations

import uuid

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from startronics.domain.errors import ClaimConflict, InvalidState, NotFound, ValidationError
from startronics.domain.lifecycle import statuses
from startronics.domain.lifecycle.statuses import LifecycleAction, Role, Urgency, ensure_repair_transition
from startronics.domain.profiles.db_models import UserProfile
from startronics.domain.repairs.db_models import Device, RepairRequest
from startronics.domain.repairs.schemas import RepairRequestCreate

TITLE_DESCRIPTION_CHARS = 50


def build_title(device_type: str, description: str) -> str:
    return f"{device_type} - {description[:TITLE_DESCRIPTION_CHARS]}"


def _clean_reason(reason: str | None) -> str:
    cleaned = (reason or "").strip()
    if not cleaned:
        raise ValidationError(detail="A reason is required")
    return cleaned


def _clean_optional(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned or None


async def create_repair_request(
    session: AsyncSession, user_id: uuid.UUID, payload: RepairRequestCreate
) -> RepairRequest:
    device = Device(
        user_id=user_id,
        type=payload.device_type,
        brand=payload.brand or None,
        model=payload.model or None,
    )
    session.add(device)
    await session.flush()

    repair_request = RepairRequest(
        user_id=user_id,
        device_id=device.id,
        title=build_title(payload.device_type, payload.issue_description),
        description=payload.issue_description,
        urgency=Urgency(payload.urgency).value,
        status=statuses.REPAIR_PENDING,
    )
    repair_request.device = device
    session.add(repair_request)
    await session.flush()
    return repair_request


async def get_request(session: AsyncSession, request_id: uuid.UUID) -> RepairRequest:
    result = await session.execute(
        select(RepairRequest)
        .where(RepairRequest.id == request_id)
        .options(selectinload(RepairRequest.device))
        .execution_options(populate_existing=True)
        .limit(1)
    )
    repair_request = result.scalar_one_or_none()
    if repair_request is None:
        raise NotFound(detail="Repair request not found")
    return repair_request


async def get_owned_request(
    session: AsyncSession, user_id: uuid.UUID, request_id: uuid.UUID
) -> RepairRequest:
    repair_request = await get_request(session, request_id)
    if repair_request.user_id != user_id:
        raise NotFound(detail="Repair request not found")
    return repair_request


async def _get_assigned_request(
    session: AsyncSession, technician_id: uuid.UUID, request_id: uuid.UUID
) -> RepairRequest:
    repair_request = await get_request(session, request_id)
    if repair_request.assigned_technician_id != technician_id:
        raise NotFound(detail="Repair request not found")
    return repair_request


async def list_requests_for_user(session: AsyncSession, user_id: uuid.UUID) -> list[RepairRequest]:
    result = await session.execute(
        select(RepairRequest)
        .where(RepairRequest.user_id == user_id)
        .options(selectinload(RepairRequest.device))
        .order_by(RepairRequest.created_at.desc(), RepairRequest.id.desc())
    )
    return list(result.scalars().all())


async def count_requests(session: AsyncSession) -> int:
    result = await session.execute(select(func.count()).select_from(RepairRequest))
    return int(result.scalar_one())


async def _apply_conditional(
    session: AsyncSession,
    repair_request: RepairRequest,
    values: dict,
    *extra_conditions,
) -> RepairRequest:
    """Write `values` only if the row still has the status that was validated."""
    result = await session.execute(
        update(RepairRequest)
        .where(
            RepairRequest.id == repair_request.id,
            RepairRequest.status == repair_request.status,
            *extra_conditions,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise InvalidState(detail="Repair request changed concurrently; reload and retry")
    return await get_request(session, repair_request.id)


async def update_request(
    session: AsyncSession,
    user_id: uuid.UUID,
    request_id: uuid.UUID,
    *,
    description: str | None = None,
    urgency: Urgency | None = None,
) -> RepairRequest:
    repair_request = await get_owned_request(session, user_id, request_id)
    ensure_repair_transition(LifecycleAction.edit_request, repair_request.status)
    values: dict = {}
    if description is not None:
        cleaned = description.strip()
        if not cleaned:
            raise ValidationError(detail="Description cannot be empty")
        values["description"] = cleaned
        values["title"] = build_title(repair_request.device.type, cleaned)
    if urgency is not None:
        values["urgency"] = Urgency(urgency).value
    if not values:
        return repair_request
    return await _apply_conditional(session, repair_request, values)


async def delete_request(session: AsyncSession, user_id: uuid.UUID, request_id: uuid.UUID) -> None:
    repair_request = await get_owned_request(session, user_id, request_id)
    ensure_repair_transition(LifecycleAction.delete_request, repair_request.status)
    device_id = repair_request.device_id
    result = await session.execute(
        delete(RepairRequest)
        .where(RepairRequest.id == repair_request.id, RepairRequest.status == repair_request.status)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise InvalidState(detail="Repair request changed concurrently; reload and retry")
    session.expunge(repair_request)
    await session.execute(
        delete(Device).where(Device.id == device_id).execution_options(synchronize_session=False)
    )


async def _ensure_technician_profile(session: AsyncSession, technician_id: uuid.UUID) -> None:
    result = await session.execute(
        select(UserProfile.role).where(UserProfile.id == technician_id).limit(1)
    )
    role = result.scalar_one_or_none()
    if role != Role.technician.value:
        raise ValidationError(detail="Assigned user is not a technician")


async def approve(
    session: AsyncSession,
    request_id: uuid.UUID,
    *,
    admin_notes: str | None = None,
    technician_id: uuid.UUID | None = None,
) -> RepairRequest:
    repair_request = await get_request(session, request_id)
    transition = ensure_repair_transition(LifecycleAction.approve, repair_request.status)
    values: dict = {"status": transition.target}
    cleaned_notes = _clean_optional(admin_notes)
    if cleaned_notes is not None:
        values["admin_notes"] = cleaned_notes
    if technician_id is not None:
        await _ensure_technician_profile(session, technician_id)
        values["assigned_technician_id"] = technician_id
    return await _apply_conditional(session, repair_request, values)


async def reject(session: AsyncSession, request_id: uuid.UUID, reason: str | None) -> RepairRequest:
    repair_request = await get_request(session, request_id)
    transition = ensure_repair_transition(LifecycleAction.reject, repair_request.status)
    cleaned = _clean_reason(reason)
    return await _apply_conditional(
        session, repair_request, {"status": transition.target, "admin_notes": cleaned}
    )


async def claim(session: AsyncSession, request_id: uuid.UUID, technician_id: uuid.UUID) -> RepairRequest:
    result = await session.execute(
        update(RepairRequest)
        .where(
            RepairRequest.id == request_id,
            RepairRequest.status == statuses.REPAIR_PENDING,
            RepairRequest.assigned_technician_id.is_(None),
        )
        .values(assigned_technician_id=technician_id)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        exists = await session.execute(
            select(RepairRequest.id).where(RepairRequest.id == request_id).limit(1)
        )
        if exists.scalar_one_or_none() is None:
            raise NotFound(detail="Repair request not found")
        raise ClaimConflict(detail="Repair request is no longer available to claim")
    return await get_request(session, request_id)


async def technician_transition(
    session: AsyncSession,
    technician_id: uuid.UUID,
    request_id: uuid.UUID,
    action: LifecycleAction,
    *,
    notes: str | None = None,
) -> RepairRequest:
    repair_request = await _get_assigned_request(session, technician_id, request_id)
    transition = ensure_repair_transition(action, repair_request.status)
    values: dict = {"status": transition.target}
    if transition.requires_reason:
        values["technician_notes"] = _clean_reason(notes)
    else:
        cleaned_notes = _clean_optional(notes)
        if cleaned_notes is not None:
            values["technician_notes"] = cleaned_notes
    return await _apply_conditional(
        session,
        repair_request,
        values,
        RepairRequest.assigned_technician_id == technician_id,
    )


async def mark_completed_by_bill(
    session: AsyncSession, technician_id: uuid.UUID, request_id: uuid.UUID
) -> RepairRequest:
    return await technician_transition(session, technician_id, request_id, LifecycleAction.issue_bill)
