"""Tests for the Firestore store's batch commit, against a mocked client."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from google.api_core import exceptions as google_exceptions

from app.core.datastore import Write
from app.core.exceptions import (
    DatastoreUnavailable,
    DocumentExistsError,
    DocumentNotFoundError,
    WriteConflictError,
)
from app.core.firestore_store import FirestoreDocumentStore


@pytest.fixture
def firestore_client() -> MagicMock:
    client = MagicMock()
    client.batch.return_value.commit = AsyncMock()
    return client


@pytest.mark.asyncio
async def test_commit_builds_one_batch(firestore_client: MagicMock):
    store = FirestoreDocumentStore(firestore_client)

    await store.commit(
        [
            Write("create", "appointments", "a1", {"status": "scheduled"}),
            Write("update", "appointment_slots", "c1", {"appointmentId": "a1"}, "rev-1"),
            Write("delete", "appointment_slots", "c0"),
        ]
    )

    batch = firestore_client.batch.return_value
    batch.create.assert_called_once()
    firestore_client.write_option.assert_called_once_with(last_update_time="rev-1")
    assert batch.update.call_args.kwargs["option"] is firestore_client.write_option.return_value
    batch.delete.assert_called_once()
    batch.commit.assert_awaited_once()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error,expected,guarded",
    [
        (google_exceptions.AlreadyExists("exists"), DocumentExistsError, False),
        (google_exceptions.FailedPrecondition("stale"), WriteConflictError, True),
        (google_exceptions.NotFound("gone"), WriteConflictError, True),
        (google_exceptions.NotFound("gone"), DocumentNotFoundError, False),
        (google_exceptions.ServiceUnavailable("down"), DatastoreUnavailable, False),
    ],
)
async def test_commit_error_mapping(firestore_client: MagicMock, error, expected, guarded: bool):
    firestore_client.batch.return_value.commit = AsyncMock(side_effect=error)
    store = FirestoreDocumentStore(firestore_client)

    with pytest.raises(expected):
        await store.commit(
            [Write("update", "appointment_slots", "c1", {}, "rev-1" if guarded else None)]
        )
