"""Document store interface and the in-memory backend.

Services talk to the datastore only through :class:`DocumentStore`, so the
same code runs against Firestore in production and against
:class:`InMemoryDocumentStore` in tests and local development.
"""

import copy
import itertools
import uuid
from abc import ABC, abstractmethod
from collections import defaultdict
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, NamedTuple

import structlog

from app.core.exceptions import (
    DocumentExistsError,
    DocumentNotFoundError,
    QueryNotSupportedError,
    WriteConflictError,
)

logger = structlog.get_logger(__name__)


class FieldFilter(NamedTuple):
    """Single ``field <op> value`` predicate."""

    field: str
    op: str
    value: Any


class OrderBy(NamedTuple):
    """Sort key for a query."""

    field: str
    descending: bool = False


@dataclass
class Document:
    """Snapshot of a stored document."""

    id: str
    data: dict[str, Any]
    # Opaque backend revision, used as a write precondition
    update_time: Any = None


@dataclass(frozen=True)
class Write:
    """
    One write in an atomic :meth:`DocumentStore.commit`.

    ``op`` is ``create`` (fails if the document exists), ``update`` (fails if
    it does not) or ``delete``. An update with ``if_update_time`` only applies
    if the document is still at that revision.
    """

    op: str
    collection: str
    doc_id: str
    data: dict[str, Any] | None = None
    if_update_time: Any = None


SnapshotCallback = Callable[[Document | None], None]


class Subscription:
    """
    Handle for a live document listener.

    The owner must call :meth:`unsubscribe` when the consuming view goes
    away; it is also a context manager for scoped use.
    """

    def __init__(self, cancel: Callable[[], None]):
        self._cancel = cancel
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        """Stop delivering snapshots. Safe to call more than once."""
        if not self._active:
            return
        self._active = False
        self._cancel()

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.unsubscribe()


class DocumentStore(ABC):
    """Async CRUD + query interface over named document collections."""

    @abstractmethod
    def generate_id(self, collection: str) -> str:
        """Return a fresh document ID for ``collection``."""

    @abstractmethod
    async def add(self, collection: str, data: dict[str, Any]) -> str:
        """Insert a document under a generated ID and return the ID."""

    @abstractmethod
    async def create(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        """
        Insert a document only if ``doc_id`` is free.

        Raises:
            DocumentExistsError: If the document already exists
        """

    @abstractmethod
    async def set(
        self, collection: str, doc_id: str, data: dict[str, Any], merge: bool = False
    ) -> None:
        """Write a document, replacing it unless ``merge`` is set."""

    @abstractmethod
    async def update(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        """
        Overwrite the given fields of an existing document.

        Raises:
            DocumentNotFoundError: If the document does not exist
        """

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> None:
        """Delete a document; deleting a missing document is a no-op."""

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Document | None:
        """Fetch a document by ID."""

    @abstractmethod
    async def query(
        self,
        collection: str,
        filters: Sequence[FieldFilter] = (),
        order_by: Sequence[OrderBy] = (),
        limit: int | None = None,
    ) -> list[Document]:
        """
        Run a filtered, ordered query.

        Raises:
            QueryNotSupportedError: If the backend cannot serve the query shape
        """

    @abstractmethod
    async def commit(self, writes: Sequence[Write]) -> None:
        """
        Apply ``writes`` atomically: all of them or none.

        Raises:
            DocumentExistsError: If a create hits an existing document
            DocumentNotFoundError: If an update targets a missing document
            WriteConflictError: If an update precondition does not hold
        """

    @abstractmethod
    def watch_document(
        self, collection: str, doc_id: str, callback: SnapshotCallback
    ) -> Subscription:
        """
        Call ``callback`` with the current snapshot and on every change.

        ``None`` is delivered when the document does not exist.
        """

    async def ping(self) -> bool:
        """Return True when the backend is reachable."""
        return True

    async def close(self) -> None:
        """Release backend resources."""


# In-memory backend


def _sort_key(value: Any) -> tuple[bool, Any]:
    # Missing/None values sort first, like Firestore nulls
    return (value is not None, value)


def _matches(data: dict[str, Any], flt: FieldFilter) -> bool:
    if flt.field not in data:
        return False
    value = data[flt.field]
    try:
        if flt.op == "==":
            return value == flt.value
        if flt.op == "!=":
            return value != flt.value
        if flt.op == "<":
            return value is not None and value < flt.value
        if flt.op == "<=":
            return value is not None and value <= flt.value
        if flt.op == ">":
            return value is not None and value > flt.value
        if flt.op == ">=":
            return value is not None and value >= flt.value
        if flt.op == "in":
            return value in flt.value
        if flt.op == "not-in":
            return value not in flt.value
        if flt.op == "array-contains":
            return isinstance(value, list) and flt.value in value
    except TypeError:
        # Incomparable types never match, as in Firestore
        return False
    raise ValueError(f"Unsupported filter operator: {flt.op}")


class InMemoryDocumentStore(DocumentStore):
    """
    Dict-backed document store.

    With ``composite_queries=False`` it rejects the query shapes that need a
    composite index in Firestore (filters on more than one field, or ordering
    on a field other than the filtered one), which lets callers exercise
    their fallback paths.
    """

    def __init__(self, composite_queries: bool = True):
        self.composite_queries = composite_queries
        self._collections: dict[str, dict[str, dict[str, Any]]] = defaultdict(dict)
        self._watchers: dict[tuple[str, str], list[SnapshotCallback]] = defaultdict(list)
        self._revisions: dict[tuple[str, str], int] = {}
        self._clock = itertools.count(1)

    def generate_id(self, collection: str) -> str:
        return uuid.uuid4().hex[:20]

    async def add(self, collection: str, data: dict[str, Any]) -> str:
        doc_id = self.generate_id(collection)
        self._write(collection, doc_id, copy.deepcopy(data))
        return doc_id

    async def create(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        if doc_id in self._collections[collection]:
            raise DocumentExistsError(f"{collection}/{doc_id} already exists")
        self._write(collection, doc_id, copy.deepcopy(data))

    async def set(
        self, collection: str, doc_id: str, data: dict[str, Any], merge: bool = False
    ) -> None:
        current = self._collections[collection].get(doc_id)
        if merge and current is not None:
            merged = {**current, **copy.deepcopy(data)}
        else:
            merged = copy.deepcopy(data)
        self._write(collection, doc_id, merged)

    async def update(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        current = self._collections[collection].get(doc_id)
        if current is None:
            raise DocumentNotFoundError(f"{collection}/{doc_id} does not exist")
        self._write(collection, doc_id, {**current, **copy.deepcopy(data)})

    async def delete(self, collection: str, doc_id: str) -> None:
        if self._collections[collection].pop(doc_id, None) is not None:
            self._revisions.pop((collection, doc_id), None)
            self._notify(collection, doc_id)

    async def get(self, collection: str, doc_id: str) -> Document | None:
        return self._snapshot(collection, doc_id)

    async def query(
        self,
        collection: str,
        filters: Sequence[FieldFilter] = (),
        order_by: Sequence[OrderBy] = (),
        limit: int | None = None,
    ) -> list[Document]:
        if not self.composite_queries:
            self._check_index_requirements(filters, order_by)

        results = [
            Document(
                id=doc_id,
                data=copy.deepcopy(data),
                update_time=self._revisions.get((collection, doc_id)),
            )
            for doc_id, data in self._collections[collection].items()
            if all(_matches(data, flt) for flt in filters)
        ]

        # Stable sorts applied last-key-first give a multi-key ordering
        for order in reversed(order_by):
            results = [doc for doc in results if order.field in doc.data]
            results.sort(key=lambda doc: _sort_key(doc.data[order.field]), reverse=order.descending)

        if limit is not None:
            results = results[:limit]
        return results

    async def commit(self, writes: Sequence[Write]) -> None:
        # Validate everything before touching state so a failure applies nothing
        for write in writes:
            current = self._collections[write.collection].get(write.doc_id)
            revision = self._revisions.get((write.collection, write.doc_id))
            if write.op == "create":
                if current is not None:
                    raise DocumentExistsError(f"{write.collection}/{write.doc_id} already exists")
            elif write.op == "update":
                if write.if_update_time is not None:
                    if revision != write.if_update_time:
                        raise WriteConflictError(
                            f"{write.collection}/{write.doc_id} changed since it was read"
                        )
                elif current is None:
                    raise DocumentNotFoundError(
                        f"{write.collection}/{write.doc_id} does not exist"
                    )
            elif write.op != "delete":
                raise ValueError(f"Unsupported write operation: {write.op}")

        for write in writes:
            if write.op == "create":
                self._write(write.collection, write.doc_id, copy.deepcopy(write.data))
            elif write.op == "update":
                current = self._collections[write.collection][write.doc_id]
                self._write(
                    write.collection, write.doc_id, {**current, **copy.deepcopy(write.data)}
                )
            elif self._collections[write.collection].pop(write.doc_id, None) is not None:
                self._revisions.pop((write.collection, write.doc_id), None)
                self._notify(write.collection, write.doc_id)

    def watch_document(
        self, collection: str, doc_id: str, callback: SnapshotCallback
    ) -> Subscription:
        key = (collection, doc_id)
        self._watchers[key].append(callback)

        def cancel() -> None:
            if callback in self._watchers[key]:
                self._watchers[key].remove(callback)

        callback(self._snapshot(collection, doc_id))
        return Subscription(cancel)

    def watcher_count(self, collection: str, doc_id: str) -> int:
        """Number of live listeners on a document."""
        return len(self._watchers[(collection, doc_id)])

    async def close(self) -> None:
        self._watchers.clear()

    def _check_index_requirements(
        self, filters: Sequence[FieldFilter], order_by: Sequence[OrderBy]
    ) -> None:
        filtered_fields = {flt.field for flt in filters}
        if len(filtered_fields) > 1:
            raise QueryNotSupportedError(
                "The query requires an index: filters on " + ", ".join(sorted(filtered_fields))
            )
        if filtered_fields and any(order.field not in filtered_fields for order in order_by):
            raise QueryNotSupportedError("The query requires an index: filter plus ordering")

    def _snapshot(self, collection: str, doc_id: str) -> Document | None:
        data = self._collections[collection].get(doc_id)
        if data is None:
            return None
        return Document(
            id=doc_id,
            data=copy.deepcopy(data),
            update_time=self._revisions.get((collection, doc_id)),
        )

    def _write(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        self._collections[collection][doc_id] = data
        self._revisions[(collection, doc_id)] = next(self._clock)
        self._notify(collection, doc_id)

    def _notify(self, collection: str, doc_id: str) -> None:
        for callback in list(self._watchers[(collection, doc_id)]):
            try:
                callback(self._snapshot(collection, doc_id))
            except Exception as e:
                logger.error(
                    "document_watcher_failed",
                    collection=collection,
                    document_id=doc_id,
                    error=str(e),
                )
