"""Item request/response schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ItemListItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    original_name: str
    mode: str
    status: str
    score: int | None
    slug: str | None
    version: str | None
    type: str | None
    created_at: datetime
    updated_at: datetime


class ItemDetail(ItemListItem):
    zip_path: str
    extract_path: str | None
    metadata: dict | None = Field(default=None, validation_alias="meta")
    analysis_log: str | None
    error: str | None


class UploadAccepted(BaseModel):
    id: uuid.UUID
    status: str
    message: str


class ReviewRequest(BaseModel):
    """Manual override from the review form."""

    slug: str | None = None
    version: str | None = None
    type: Literal["plugin", "theme"] | None = None
    name: str | None = None
    author: str | None = None
    author_url: str | None = None
    force_build: bool = False
    action: Literal["upload"] | None = None
    force_upload: bool = False


class ReviewResponse(BaseModel):
    success: bool
    message: str
    item: ItemDetail
