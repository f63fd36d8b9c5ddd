"""Firestore implementation of the document store."""

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Any

import structlog
from google.api_core import exceptions as google_exceptions
from google.cloud.firestore_v1 import FieldFilter as FirestoreFieldFilter

from app.core.datastore import (
    Document,
    DocumentStore,
    FieldFilter,
    OrderBy,
    SnapshotCallback,
    Subscription,
    Write,
)
from app.core.exceptions import (
    DatastoreUnavailable,
    DocumentExistsError,
    DocumentNotFoundError,
    QueryNotSupportedError,
    WriteConflictError,
)

logger = structlog.get_logger(__name__)


@contextmanager
def _translate_errors(operation: str, collection: str) -> Iterator[None]:
    """Map Google API errors onto datastore errors."""
    try:
        yield
    except google_exceptions.AlreadyExists as e:
        raise DocumentExistsError(str(e)) from e
    except google_exceptions.NotFound as e:
        raise DocumentNotFoundError(str(e)) from e
    except (google_exceptions.FailedPrecondition, google_exceptions.InvalidArgument) as e:
        # Missing composite index or an unsupported combination of filters
        raise QueryNotSupportedError(str(e)) from e
    except (google_exceptions.GoogleAPIError, google_exceptions.RetryError) as e:
        logger.error(
            "firestore_operation_failed",
            operation=operation,
            collection=collection,
            error=str(e),
        )
        raise DatastoreUnavailable(f"Datastore {operation} failed on {collection}") from e


class FirestoreDocumentStore(DocumentStore):
    """Document store backed by Cloud Firestore."""

    def __init__(self, client: Any, listener_client: Any = None):
        """
        Initialize with Firestore clients.

        Args:
            client: ``google.cloud.firestore.AsyncClient`` for reads and writes
            listener_client: sync ``google.cloud.firestore.Client`` used for
                snapshot listeners
        """
        self.client = client
        self.listener_client = listener_client

    def generate_id(self, collection: str) -> str:
        return self.client.collection(collection).document().id

    async def add(self, collection: str, data: dict[str, Any]) -> str:
        with _translate_errors("add", collection):
            _, ref = await self.client.collection(collection).add(data)
        return ref.id

    async def create(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        with _translate_errors("create", collection):
            await self.client.collection(collection).document(doc_id).create(data)

    async def set(
        self, collection: str, doc_id: str, data: dict[str, Any], merge: bool = False
    ) -> None:
        with _translate_errors("set", collection):
            await self.client.collection(collection).document(doc_id).set(data, merge=merge)

    async def update(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        with _translate_errors("update", collection):
            await self.client.collection(collection).document(doc_id).update(data)

    async def delete(self, collection: str, doc_id: str) -> None:
        with _translate_errors("delete", collection):
            await self.client.collection(collection).document(doc_id).delete()

    async def get(self, collection: str, doc_id: str) -> Document | None:
        with _translate_errors("get", collection):
            snapshot = await self.client.collection(collection).document(doc_id).get()
        if not snapshot.exists:
            return None
        return Document(
            id=snapshot.id, data=snapshot.to_dict() or {}, update_time=snapshot.update_time
        )

    async def query(
        self,
        collection: str,
        filters: Sequence[FieldFilter] = (),
        order_by: Sequence[OrderBy] = (),
        limit: int | None = None,
    ) -> list[Document]:
        query = self.client.collection(collection)
        for flt in filters:
            query = query.where(filter=FirestoreFieldFilter(flt.field, flt.op, flt.value))
        for order in order_by:
            query = query.order_by(
                order.field, direction="DESCENDING" if order.descending else "ASCENDING"
            )
        if limit is not None:
            query = query.limit(limit)

        with _translate_errors("query", collection):
            return [
                Document(
                    id=snapshot.id,
                    data=snapshot.to_dict() or {},
                    update_time=snapshot.update_time,
                )
                async for snapshot in query.stream()
            ]

    async def commit(self, writes: Sequence[Write]) -> None:
        batch = self.client.batch()
        for write in writes:
            ref = self.client.collection(write.collection).document(write.doc_id)
            if write.op == "create":
                batch.create(ref, write.data)
            elif write.op == "update":
                option = None
                if write.if_update_time is not None:
                    option = self.client.write_option(last_update_time=write.if_update_time)
                batch.update(ref, write.data, option=option)
            elif write.op == "delete":
                batch.delete(ref)
            else:
                raise ValueError(f"Unsupported write operation: {write.op}")

        guarded = any(write.if_update_time is not None for write in writes)
        collections = ",".join(sorted({write.collection for write in writes}))
        try:
            with _translate_errors("commit", collections):
                await batch.commit()
        except QueryNotSupportedError as e:
            # A failed last_update_time precondition surfaces as FAILED_PRECONDITION
            raise WriteConflictError(str(e)) from e
        except DocumentNotFoundError as e:
            if guarded:
                raise WriteConflictError(str(e)) from e
            raise

    def watch_document(
        self, collection: str, doc_id: str, callback: SnapshotCallback
    ) -> Subscription:
        if self.listener_client is None:
            raise RuntimeError("Firestore listener client is not configured")

        def on_snapshot(snapshots: list, changes: list, read_time: Any) -> None:
            snapshot = snapshots[0] if snapshots else None
            if snapshot is None or not snapshot.exists:
                callback(None)
            else:
                callback(Document(id=snapshot.id, data=snapshot.to_dict() or {}))

        ref = self.listener_client.collection(collection).document(doc_id)
        watch = ref.on_snapshot(on_snapshot)
        return Subscription(watch.unsubscribe)

    async def ping(self) -> bool:
        try:
            await self.client.collection("_health").document("ping").get()
            return True
        except Exception:
            return False
