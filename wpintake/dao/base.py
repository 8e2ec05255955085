"""Generic base DAO — CRUD (ORM) + signed keyset pagination (Core).

Listings are ordered newest first by ``(created_at, id)``. The cursor
handed to clients is that pair, JSON-encoded and HMAC-signed so a client
cannot craft one that seeks to an arbitrary position.
"""

import base64
import hashlib
import hmac
import json
import os
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

from sqlalchemy import Select, func, select, tuple_
from sqlalchemy.ext.asyncio import AsyncSession

from wpintake.core.database import Base

ModelT = TypeVar("ModelT", bound=Base)

PAGE_SIZE_MIN = 1
PAGE_SIZE_MAX = 100
PAGE_SIZE_DEFAULT = 20

_IMMUTABLE_COLUMNS = frozenset({"id", "created_at", "updated_at"})


class InvalidCursorError(ValueError):
    """Raised when a cursor string cannot be decoded or has an invalid signature."""


@dataclass
class Cursor:
    created_at: datetime
    id: uuid.UUID


@dataclass
class Page(Generic[ModelT]):
    data: list[ModelT]
    next_cursor: str | None
    has_more: bool
    total: int | None = None


class CursorCodec:
    """Signs and verifies ``(created_at, id)`` cursors with an HMAC secret."""

    def __init__(self, secret: bytes) -> None:
        self._secret = secret

    def sign(self, payload: str) -> str:
        return hmac.new(self._secret, payload.encode(), hashlib.sha256).hexdigest()[:16]

    def encode(self, created_at: datetime, row_id: uuid.UUID) -> str:
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        payload = json.dumps({"c": created_at.isoformat(), "i": str(row_id)})
        return base64.urlsafe_b64encode(f"{payload}|{self.sign(payload)}".encode()).decode()

    def decode(self, cursor: str) -> Cursor:
        try:
            raw = base64.urlsafe_b64decode(cursor.encode()).decode()
            payload, sig = raw.rsplit("|", 1)
            if not hmac.compare_digest(sig, self.sign(payload)):
                raise InvalidCursorError(f"cursor signature mismatch: {cursor!r}")
            data = json.loads(payload)
            return Cursor(created_at=datetime.fromisoformat(data["c"]), id=uuid.UUID(data["i"]))
        except InvalidCursorError:
            raise
        except (json.JSONDecodeError, KeyError, TypeError, ValueError, UnicodeDecodeError) as exc:
            raise InvalidCursorError(f"invalid cursor: {cursor!r}") from exc


# Set WPINTAKE_CURSOR_SECRET in production; cursors from one secret do not
# verify under another.
_codec = CursorCodec(
    os.environ.get("WPINTAKE_CURSOR_SECRET", "changeme-cursor-secret").encode()
)


def encode_cursor(created_at: datetime, row_id: uuid.UUID) -> str:
    """Encode (created_at, id) into a signed, URL-safe base64 string."""
    return _codec.encode(created_at, row_id)


def decode_cursor(cursor: str) -> Cursor:
    """Raises ``InvalidCursorError`` for malformed or tampered cursors."""
    return _codec.decode(cursor)


def _clamp_page_size(page_size: int) -> int:
    return max(PAGE_SIZE_MIN, min(page_size, PAGE_SIZE_MAX))


class BaseDAO(Generic[ModelT]):
    """Base data-access object. Subclasses set the ``model`` class attribute."""

    model: type[ModelT]

    # ── ORM methods ──────────────────────────────────────────────────────

    async def get_by_id(self, session: AsyncSession, pk: uuid.UUID) -> ModelT | None:
        if pk is None:
            raise ValueError("pk must not be None")
        return await session.get(self.model, pk)

    async def create(self, session: AsyncSession, **values: Any) -> ModelT:
        obj = self.model(**values)
        session.add(obj)
        await session.flush()
        # server defaults (id, status, timestamps) are needed by callers
        await session.refresh(obj)
        return obj

    async def update(self, session: AsyncSession, pk: uuid.UUID, **values: Any) -> ModelT | None:
        """Set columns on the row *pk*; None if it does not exist.

        Raises ``AttributeError`` for immutable or unknown columns, before
        anything is written.
        """
        columns = set(self.model.__mapper__.column_attrs.keys())
        for key in values:
            if key in _IMMUTABLE_COLUMNS:
                raise AttributeError(f"'{key}' is immutable and cannot be updated")
            if key not in columns:
                raise AttributeError(f"{self.model.__name__} has no column '{key}'")

        obj = await self.get_by_id(session, pk)
        if obj is None:
            return None
        for key, val in values.items():
            setattr(obj, key, val)
        await session.flush()
        await session.refresh(obj)
        return obj

    async def get_by_field(self, session: AsyncSession, **filters: Any) -> ModelT | None:
        """First row matching all *filters* (column == value), or None."""
        if not filters:
            raise ValueError("get_by_field() requires at least one filter")
        stmt = select(self.model).filter_by(**filters).limit(1)
        result = await session.execute(stmt)
        return result.scalars().first()

    # ── Core methods ─────────────────────────────────────────────────────

    async def paginate(
        self,
        session: AsyncSession,
        query: Select,
        cursor: str | None = None,
        page_size: int = PAGE_SIZE_DEFAULT,
        with_total: bool = False,
    ) -> Page[ModelT]:
        """Apply ``(created_at DESC, id DESC)`` keyset pagination to *query*.

        *query* carries the caller's filters only; ordering and limit are
        added here. With *with_total*, ``Page.total`` counts every row the
        filters match, ignoring the cursor.
        """
        page_size = _clamp_page_size(page_size)
        table = self.model.__table__

        total = await self.count(session, query) if with_total else None

        if cursor:
            cur = decode_cursor(cursor)
            query = query.where(tuple_(table.c.created_at, table.c.id) < (cur.created_at, cur.id))
        query = query.order_by(table.c.created_at.desc(), table.c.id.desc()).limit(page_size + 1)

        result = await session.execute(query)
        rows = list(result.scalars().all())
        has_more = len(rows) > page_size
        data = rows[:page_size]

        next_cursor = None
        if has_more:
            last = data[-1]
            next_cursor = encode_cursor(last.created_at, last.id)
        return Page(data=data, next_cursor=next_cursor, has_more=has_more, total=total)

    async def count(self, session: AsyncSession, query: Select | None = None) -> int:
        if query is None:
            stmt = select(func.count()).select_from(self.model.__table__)
        else:
            stmt = select(func.count()).select_from(query.order_by(None).subquery())
        result = await session.execute(stmt)
        return result.scalar_one()
