"""Document datastore configuration and lifecycle."""

from collections.abc import AsyncGenerator

import structlog

from app.config import settings
from app.core.datastore import DocumentStore, InMemoryDocumentStore

logger = structlog.get_logger(__name__)

_datastore: DocumentStore | None = None


def create_datastore() -> DocumentStore:
    """Build the document store selected by ``DATASTORE_BACKEND``."""
    backend = settings.datastore_backend.lower()

    if backend == "memory":
        logger.warning("using_in_memory_datastore", note="Data is lost on restart")
        return InMemoryDocumentStore()

    if backend == "firestore":
        from app.core.firebase import (
            get_firestore_async_client,
            get_firestore_client,
            initialize_firebase,
        )
        from app.core.firestore_store import FirestoreDocumentStore

        initialize_firebase(settings.firebase_credentials_path, settings.firebase_config_json)
        return FirestoreDocumentStore(
            client=get_firestore_async_client(),
            listener_client=get_firestore_client(),
        )

    raise ValueError(f"Unknown DATASTORE_BACKEND: {settings.datastore_backend}")


def get_datastore() -> DocumentStore:
    """Get or create the process-wide document store."""
    global _datastore

    if _datastore is None:
        _datastore = create_datastore()

    return _datastore


async def get_db() -> AsyncGenerator[DocumentStore, None]:
    """Dependency for getting the document store."""
    yield get_datastore()


async def check_database_connection() -> bool:
    """Check if the datastore is reachable."""
    try:
        return await get_datastore().ping()
    except Exception:
        return False


async def close_datastore() -> None:
    """Release the document store."""
    global _datastore

    if _datastore is not None:
        await _datastore.close()
        _datastore = None
