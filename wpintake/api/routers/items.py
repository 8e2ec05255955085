"""Items router — upload, list, inspect and review uploaded archives."""

from __future__ import annotations

import asyncio
import json
import uuid
from pathlib import Path, PurePosixPath

import structlog
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from wpintake.api.deps import (
    Transaction,
    get_item_service,
    get_job_queue,
    get_session,
    get_staging_dir,
    get_temp_dir,
    get_transaction,
    require_admin,
)
from wpintake.api.schemas.common import PaginatedResponse
from wpintake.api.schemas.item import (
    ItemDetail,
    ItemListItem,
    ReviewRequest,
    ReviewResponse,
    UploadAccepted,
)
from wpintake.engines.builder.packager import SOURCE_DIRNAME, version_dir_for
from wpintake.engines.builder.tree import TREE_FILENAME, generate_tree
from wpintake.queue import Job, JobQueue
from wpintake.services import NotFoundError, ValidationError
from wpintake.services.item_service import ItemService

log = structlog.get_logger("wpintake.api")

router = APIRouter(dependencies=[Depends(require_admin)])


def _clean_filename(filename: str) -> str:
    name = PurePosixPath(filename.replace("\\", "/")).name.strip()
    if not name or not name.lower().endswith(".zip"):
        raise ValidationError("filename must name a .zip archive")
    return name


@router.post("/", response_model=UploadAccepted, status_code=status.HTTP_202_ACCEPTED)
async def upload_item(
    request: Request,
    filename: str = Query(..., min_length=1),
    mode: str = Query("new", pattern="^(new|update)$"),
    tx: Transaction = Depends(get_transaction),
    svc: ItemService = Depends(get_item_service),
    queue: JobQueue = Depends(get_job_queue),
    temp_dir: Path = Depends(get_temp_dir),
) -> UploadAccepted:
    """Accept a raw zip body, record it and queue its analysis."""
    name = _clean_filename(filename)
    body = await request.body()
    if not body:
        raise ValidationError("request body is empty; send the zip archive as the body")

    upload_id = uuid.uuid4().hex[:12]
    upload_dir = temp_dir / "uploads"
    zip_path = upload_dir / f"{upload_id}-{name}"
    extract_path = temp_dir / f"{upload_id}-extracted"

    def _save() -> None:
        upload_dir.mkdir(parents=True, exist_ok=True)
        zip_path.write_bytes(body)

    await asyncio.to_thread(_save)

    async with tx() as session:
        item = await svc.create(
            session,
            original_name=name,
            zip_path=str(zip_path),
            extract_path=str(extract_path),
            mode=mode,
        )
    queue.submit(Job(str(item.id), "analyze"))
    log.info("items.uploaded", item_id=str(item.id), filename=name, size=len(body), mode=mode)
    return UploadAccepted(id=item.id, status=item.status, message="Upload successful, analysis started")


@router.get("/", response_model=PaginatedResponse[ItemListItem])
async def list_items(
    cursor: str | None = Query(None),
    page_size: int = Query(20, ge=1, le=100),
    status_filter: str | None = Query(None, alias="status"),
    session: AsyncSession = Depends(get_session),
    svc: ItemService = Depends(get_item_service),
) -> PaginatedResponse[ItemListItem]:
    listing = await svc.list(session, cursor, page_size, status_filter)
    return PaginatedResponse[ItemListItem].from_listing(listing, ItemListItem)


@router.get("/{item_id}", response_model=ItemDetail)
async def get_item(
    item_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
    svc: ItemService = Depends(get_item_service),
) -> ItemDetail:
    item = await svc.get(session, item_id)
    return ItemDetail.model_validate(item)


@router.post("/{item_id}/review", response_model=ReviewResponse)
async def review_item(
    item_id: uuid.UUID,
    body: ReviewRequest,
    tx: Transaction = Depends(get_transaction),
    svc: ItemService = Depends(get_item_service),
    queue: JobQueue = Depends(get_job_queue),
) -> ReviewResponse:
    """Apply manual overrides, then optionally queue a build or an upload."""
    overrides = body.model_dump(
        include={"slug", "version", "type", "name", "author", "author_url"}, exclude_none=True
    )
    async with tx() as session:
        item = await svc.apply_review(session, item_id, overrides)

    message = "Item updated"
    if body.force_build:
        queue.submit(Job(str(item.id), "build", {"force": True}))
        message = "Build started"
    elif body.action == "upload":
        queue.submit(Job(str(item.id), "upload", {"force": body.force_upload}))
        message = "Upload started"

    return ReviewResponse(success=True, message=message, item=ItemDetail.model_validate(item))


@router.get("/{item_id}/tree")
async def get_item_tree(
    item_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
    svc: ItemService = Depends(get_item_service),
    staging_dir: Path = Depends(get_staging_dir),
) -> dict:
    """The built source tree, described fresh from ``source/`` when present.

    Falls back to the ``tree.json`` written at build time.
    """
    item = await svc.get(session, item_id)
    if not item.slug or not item.version or not item.type:
        raise NotFoundError("item has not been built")
    # UnsafePathError renders as 422.
    version_dir = version_dir_for(staging_dir, item.type, item.slug, item.version)
    source_dir = version_dir / SOURCE_DIRNAME
    if source_dir.is_dir():
        return await asyncio.to_thread(generate_tree, source_dir)
    tree_path = version_dir / TREE_FILENAME
    if not tree_path.is_file():
        raise NotFoundError("tree not found; build the item with its source first")
    text = await asyncio.to_thread(tree_path.read_text, encoding="utf-8")
    return json.loads(text)
