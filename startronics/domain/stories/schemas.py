import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class StoryCreate(BaseModel):
    quote_id: uuid.UUID
    rating: int = 5
    story: str = Field(default="", max_length=5000)
    image_url: str | None = Field(default=None, max_length=1000)


class StoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    quote_id: uuid.UUID
    rating: int
    story: str
    image_url: str | None = None
    created_at: datetime


class FeaturedStoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    rating: int
    story: str
    image_url: str | None = None
    created_at: datetime
