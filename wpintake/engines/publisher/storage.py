"""Object storage backends for published artifacts."""

from __future__ import annotations

import asyncio
import mimetypes
import os
from pathlib import Path
from typing import Protocol

import httpx
import structlog

from wpintake.engines.exceptions import UploadError

log = structlog.get_logger("wpintake.engine")

DEFAULT_CONTENT_TYPE = "application/octet-stream"


def guess_content_type(path: str | Path) -> str:
    content_type, _ = mimetypes.guess_type(str(path))
    return content_type or DEFAULT_CONTENT_TYPE


class ObjectStore(Protocol):
    async def upload_bytes(self, bucket: str, key: str, data: bytes, content_type: str) -> str:
        """Store *data* at *bucket*/*key*; return the stored key."""
        ...

    async def close(self) -> None: ...


class HttpObjectStore:
    """S3-style object store reached through authenticated HTTP ``PUT``s."""

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 60.0,
    ) -> None:
        resolved_url = base_url or os.environ.get("WPINTAKE_STORAGE_URL")
        if not resolved_url:
            raise ValueError("WPINTAKE_STORAGE_URL is not set")
        resolved_token = token or os.environ.get("WPINTAKE_STORAGE_TOKEN")
        headers: dict[str, str] = {}
        if resolved_token:
            headers["Authorization"] = f"Bearer {resolved_token}"
        self._client = httpx.AsyncClient(
            base_url=resolved_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    # ── lifecycle ──────────────────────────────────────────────────────────

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> HttpObjectStore:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ── public ─────────────────────────────────────────────────────────────

    async def upload_bytes(self, bucket: str, key: str, data: bytes, content_type: str) -> str:
        try:
            resp = await self._client.put(
                f"/{bucket}/{key}",
                content=data,
                headers={"Content-Type": content_type},
            )
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise UploadError(f"upload of {bucket}/{key} failed: {exc}") from exc
        return key


class LocalObjectStore:
    """Filesystem-backed store: ``{root}/{bucket}/{key}``."""

    def __init__(self, root: str | Path | None = None) -> None:
        resolved = root or os.environ.get("WPINTAKE_STORAGE_DIR")
        if not resolved:
            raise ValueError("WPINTAKE_STORAGE_DIR is not set")
        self._root = Path(resolved)

    async def close(self) -> None:
        return None

    def path_for(self, bucket: str, key: str) -> Path:
        target = (self._root / bucket / key).resolve()
        if not target.is_relative_to((self._root / bucket).resolve()):
            raise UploadError(f"key escapes bucket: {key}")
        return target

    async def upload_bytes(self, bucket: str, key: str, data: bytes, content_type: str) -> str:
        target = self.path_for(bucket, key)
        try:
            await asyncio.to_thread(self._write, target, data)
        except OSError as exc:
            raise UploadError(f"write of {bucket}/{key} failed: {exc}") from exc
        return key

    @staticmethod
    def _write(target: Path, data: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)


def store_from_env() -> ObjectStore:
    """HTTP store when ``WPINTAKE_STORAGE_URL`` is set, else the local one."""
    if os.environ.get("WPINTAKE_STORAGE_URL"):
        return HttpObjectStore()
    return LocalObjectStore(os.environ.get("WPINTAKE_STORAGE_DIR") or "./storage")
