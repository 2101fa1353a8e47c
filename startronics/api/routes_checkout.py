import uuid

from fastapi import APIRouter, Depends, status

from startronics.api.auth import Identity, require_customer
from startronics.dependencies import get_lifecycle
from startronics.domain.lifecycle.coordinator import LifecycleCoordinator
from startronics.domain.payments.schemas import (
    CheckoutConfirmRequest,
    CheckoutResponse,
    PaymentResponse,
    SavedCardResponse,
)

router = APIRouter(tags=["checkout"])


@router.post(
    "/v1/checkout/{quote_id}/confirm",
    response_model=CheckoutResponse,
    status_code=status.HTTP_201_CREATED,
)
async def confirm_checkout(
    quote_id: uuid.UUID,
    payload: CheckoutConfirmRequest,
    identity: Identity = Depends(require_customer),
    lifecycle: LifecycleCoordinator = Depends(get_lifecycle),
) -> CheckoutResponse:
    """Pay a sent bill in full and, optionally, keep the card on file."""
    result = await lifecycle.confirm_payment(identity.actor, quote_id, payload)
    saved_card = SavedCardResponse.model_validate(result.saved_card) if result.saved_card else None
    return CheckoutResponse(payment=PaymentResponse.model_validate(result.payment), saved_card=saved_card)
