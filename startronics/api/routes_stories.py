from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from startronics.api.auth import Identity, require_customer
from startronics.dependencies import get_app_settings, get_lifecycle
from startronics.domain.lifecycle.coordinator import LifecycleCoordinator
from startronics.domain.stories.schemas import FeaturedStoryResponse, StoryCreate, StoryResponse
from startronics.domain.views import service as views_service
from startronics.infra.db import get_db_session

router = APIRouter(tags=["stories"])


@router.post("/v1/stories", response_model=StoryResponse, status_code=status.HTTP_201_CREATED)
async def submit_story(
    payload: StoryCreate,
    identity: Identity = Depends(require_customer),
    lifecycle: LifecycleCoordinator = Depends(get_lifecycle),
) -> StoryResponse:
    story = await lifecycle.submit_story(identity.actor, payload)
    return StoryResponse.model_validate(story)


@router.get("/v1/stories/featured", response_model=list[FeaturedStoryResponse])
async def featured_stories(
    session: AsyncSession = Depends(get_db_session),
    app_settings=Depends(get_app_settings),
) -> list[FeaturedStoryResponse]:
    return await views_service.featured_stories(session, app_settings.featured_story_limit)
