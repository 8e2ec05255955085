"""Async client for the production catalog API."""

from __future__ import annotations

import asyncio
import os
from typing import Any

import httpx
import structlog

from wpintake.engines.analyzer.version import latest_version

log = structlog.get_logger("wpintake.engine")

_MAX_RETRIES = 3
_RETRY_BASE_DELAY = 1.0  # seconds


class CatalogClient:
    """Thin async wrapper around the catalog's admin endpoints.

    Requests carry the ``x-admin-secret`` header. 5xx responses and
    transport failures (timeouts included) are retried with exponential
    backoff; 4xx responses raise immediately.
    """

    def __init__(
        self,
        base_url: str | None = None,
        secret: str | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        retry_base_delay: float = _RETRY_BASE_DELAY,
    ) -> None:
        resolved_url = base_url or os.environ.get("WPINTAKE_CATALOG_URL")
        if not resolved_url:
            raise ValueError("WPINTAKE_CATALOG_URL is not set")
        resolved_secret = secret or os.environ.get("WPINTAKE_CATALOG_SECRET")
        headers: dict[str, str] = {"Accept": "application/json"}
        if resolved_secret:
            headers["x-admin-secret"] = resolved_secret
        self._retry_base_delay = retry_base_delay
        self._client = httpx.AsyncClient(
            base_url=resolved_url.rstrip("/"),
            headers=headers,
            timeout=30.0,
            transport=transport,
        )

    # ── lifecycle ──────────────────────────────────────────────────────────

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> CatalogClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ── public ─────────────────────────────────────────────────────────────

    async def get_product(self, slug: str) -> dict[str, Any] | None:
        """Fetch a product by slug; None if the catalog does not know it."""
        try:
            resp = await self._request_with_retry("GET", f"/products/{slug}")
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 404:
                return None
            raise
        return resp.json()

    async def latest_version(self, slug: str) -> str | None:
        """Highest version the catalog lists for *slug*."""
        product = await self.get_product(slug)
        if not product:
            return None
        versions = [v.get("versionNumber") for v in product.get("versions") or []]
        versions.append(product.get("latestVersion"))
        return latest_version(versions)

    async def publish(self, payload: dict[str, Any]) -> dict[str, Any]:
        resp = await self._request_with_retry("POST", "/products", json=payload)
        log.info("catalog.published", slug=payload.get("slug"), version=payload.get("version"))
        return resp.json() if resp.content else {}

    # ── internal ───────────────────────────────────────────────────────────

    async def _request_with_retry(
        self,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> httpx.Response:
        last_exc: Exception | None = None
        for attempt in range(_MAX_RETRIES):
            try:
                resp = await self._client.request(method, url, **kwargs)
                if resp.status_code < 500:
                    resp.raise_for_status()
                    return resp

                log.warning(
                    "catalog.server_error",
                    url=url,
                    status=resp.status_code,
                    attempt=attempt + 1,
                    max_retries=_MAX_RETRIES,
                )
                last_exc = httpx.HTTPStatusError(
                    f"{resp.status_code}", request=resp.request, response=resp
                )
            except httpx.TransportError as exc:
                # timeouts and refused connections alike
                log.warning(
                    "catalog.unreachable",
                    url=url,
                    error=type(exc).__name__,
                    attempt=attempt + 1,
                    max_retries=_MAX_RETRIES,
                )
                last_exc = exc

            if attempt < _MAX_RETRIES - 1:
                await asyncio.sleep(self._retry_base_delay * (2**attempt))

        raise last_exc  # type: ignore[misc]
