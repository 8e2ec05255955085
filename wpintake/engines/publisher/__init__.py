"""Publisher engine — object storage uploads and catalog registration."""

from wpintake.engines.publisher.catalog import CatalogClient
from wpintake.engines.publisher.publisher import Publisher, PublishResult, Release
from wpintake.engines.publisher.storage import (
    HttpObjectStore,
    LocalObjectStore,
    ObjectStore,
    store_from_env,
)
from wpintake.engines.publisher.uploader import UploadReport, upload_directory, upload_file

__all__ = [
    "CatalogClient",
    "HttpObjectStore",
    "LocalObjectStore",
    "ObjectStore",
    "PublishResult",
    "Publisher",
    "Release",
    "UploadReport",
    "store_from_env",
    "upload_directory",
    "upload_file",
]
