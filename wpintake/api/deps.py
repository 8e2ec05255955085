"""Dependency injection — sessions, admin auth, service and queue singletons."""

from __future__ import annotations

import hmac
import os
from collections.abc import AsyncGenerator, AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from pathlib import Path

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from wpintake.core.database import create_engine
from wpintake.dao.item_dao import ItemDAO
from wpintake.dao.product_dao import ProductDAO, ProductVersionDAO
from wpintake.engines.builder.packager import default_staging_dir
from wpintake.engines.intake.runner import IntakeRunner, StagingVersionLookup
from wpintake.engines.publisher.catalog import CatalogClient
from wpintake.engines.publisher.publisher import Publisher
from wpintake.engines.publisher.storage import store_from_env
from wpintake.queue import JobEventBus, JobQueue
from wpintake.services import AuthenticationError
from wpintake.services.catalog_service import CatalogService
from wpintake.services.item_service import ItemService

# ---------------------------------------------------------------------------
# DAO / service singletons
# ---------------------------------------------------------------------------
_item_dao = ItemDAO()
_product_dao = ProductDAO()
_product_version_dao = ProductVersionDAO()

_item_service = ItemService(_item_dao)
_catalog_service = CatalogService(_product_dao, _product_version_dao)

_event_bus = JobEventBus()
_job_queue = JobQueue(bus=_event_bus)
_runner_resources: list = []

# ---------------------------------------------------------------------------
# Engine / session factory (initialised by app lifespan)
# ---------------------------------------------------------------------------
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def init_session_factory(database_url: str | None = None) -> async_sessionmaker[AsyncSession]:
    """Create the async engine and session factory. Called once at startup."""
    global _engine, _session_factory  # noqa: PLW0603
    _engine = create_engine(database_url, pool_size=10, max_overflow=20, pool_recycle=1800)
    _session_factory = async_sessionmaker(_engine, expire_on_commit=False)
    return _session_factory


async def dispose_engine() -> None:
    global _engine  # noqa: PLW0603
    if _engine is not None:
        await _engine.dispose()
        _engine = None


def set_session_factory(factory: async_sessionmaker[AsyncSession]) -> None:
    """Override session factory (for testing)."""
    global _session_factory  # noqa: PLW0603
    _session_factory = factory


def get_engine() -> AsyncEngine | None:
    return _engine


def _require_factory() -> async_sessionmaker[AsyncSession]:
    if _session_factory is None:
        raise RuntimeError("call init_session_factory() before handling requests")
    return _session_factory


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield a per-request session with automatic commit/rollback."""
    async with _require_factory()() as session:
        async with session.begin():
            yield session


@asynccontextmanager
async def _transaction() -> AsyncIterator[AsyncSession]:
    async with _require_factory()() as session:
        async with session.begin():
            yield session


Transaction = Callable[[], AbstractAsyncContextManager[AsyncSession]]


def get_transaction() -> Transaction:
    """A unit of work that commits on exit.

    Routes that queue jobs use this so the rows a job reads are committed
    before the job is submitted.
    """
    return _transaction


# ---------------------------------------------------------------------------
# Admin auth
# ---------------------------------------------------------------------------

_bearer = HTTPBearer(auto_error=False)


async def require_admin(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> None:
    """Check the bearer token against ``WPINTAKE_ADMIN_TOKEN``; open if unset."""
    expected = os.environ.get("WPINTAKE_ADMIN_TOKEN")
    if not expected:
        return
    if credentials is None:
        raise AuthenticationError("missing authorization header")
    if not hmac.compare_digest(credentials.credentials.encode(), expected.encode()):
        raise AuthenticationError("invalid admin token")


# ---------------------------------------------------------------------------
# Job runner wiring
# ---------------------------------------------------------------------------


def init_job_runner(factory: async_sessionmaker[AsyncSession]) -> IntakeRunner:
    """Build the IntakeRunner from the environment and install it on the queue."""
    catalog_client = CatalogClient() if os.environ.get("WPINTAKE_CATALOG_URL") else None
    store = store_from_env()
    _runner_resources.append(store)
    if catalog_client is not None:
        _runner_resources.append(catalog_client)
    publisher = Publisher(store, _catalog_service, catalog_client)
    if publisher.target_env == "production" and catalog_client is not None:
        remote_lookup = catalog_client
    else:
        remote_lookup = StagingVersionLookup(factory, _catalog_service)
    runner = IntakeRunner(
        factory,
        _item_service,
        publisher=publisher,
        remote_lookup=remote_lookup,
    )
    _job_queue.handler = runner.run_job
    return runner


async def close_job_runner() -> None:
    """Close the HTTP clients opened by :func:`init_job_runner`."""
    while _runner_resources:
        await _runner_resources.pop().close()


def get_temp_dir() -> Path:
    return Path(os.environ.get("WPINTAKE_TEMP_DIR", "./temp"))


def get_staging_dir() -> Path:
    return default_staging_dir()


# ---------------------------------------------------------------------------
# Getters (for Depends())
# ---------------------------------------------------------------------------


def get_item_service() -> ItemService:
    return _item_service


def get_catalog_service() -> CatalogService:
    return _catalog_service


def get_job_queue() -> JobQueue:
    return _job_queue


def get_event_bus() -> JobEventBus:
    return _event_bus
