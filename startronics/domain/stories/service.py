from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from startronics.domain.errors import InvalidState, NotFound, ValidationError
from startronics.domain.lifecycle import statuses
from startronics.domain.payments.db_models import Payment
from startronics.domain.quotes.db_models import Quote
from startronics.domain.stories.db_models import SuccessStory
from startronics.domain.stories.schemas import StoryCreate

MIN_RATING = 1
MAX_RATING = 5
FEATURED_RATING = 5


def validate_story(payload: StoryCreate) -> str:
    if not MIN_RATING <= payload.rating <= MAX_RATING:
        raise ValidationError(detail=f"Rating must be between {MIN_RATING} and {MAX_RATING}")
    story = (payload.story or "").strip()
    if not story:
        raise ValidationError(detail="Please write a few words about your repair")
    return story


async def submit_story(session: AsyncSession, user_id: uuid.UUID, payload: StoryCreate) -> SuccessStory:
    story_text = validate_story(payload)
    result = await session.execute(
        select(Payment.status, Quote.status)
        .join(Quote, Quote.id == Payment.quote_id)
        .where(Payment.quote_id == payload.quote_id, Payment.user_id == user_id)
        .limit(1)
    )
    row = result.one_or_none()
    if row is None:
        raise NotFound(detail="No payment found for this bill")
    payment_status, quote_status = row
    if payment_status != statuses.PAYMENT_SUCCEEDED or quote_status != statuses.QUOTE_ACCEPTED:
        raise InvalidState(detail="Stories can only be shared for paid bills")

    story = SuccessStory(
        user_id=user_id,
        quote_id=payload.quote_id,
        rating=payload.rating,
        story=story_text,
        image_url=(payload.image_url or "").strip() or None,
    )
    session.add(story)
    await session.flush()
    return story


async def list_featured(session: AsyncSession, limit: int) -> list[SuccessStory]:
    result = await session.execute(
        select(SuccessStory)
        .where(SuccessStory.rating == FEATURED_RATING)
        .order_by(SuccessStory.created_at.desc(), SuccessStory.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())
