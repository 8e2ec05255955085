"""Job queue schemas."""

from __future__ import annotations

from pydantic import BaseModel


class QueueStats(BaseModel):
    size: int
    pending: int
    concurrency: int
    subscribers: int
