from __future__ import annotations

from datetime import date
from unittest.mock import AsyncMock, MagicMock

import pytest
from azure.cosmos.exceptions import CosmosHttpResponseError, CosmosResourceNotFoundError

from app.core.config import Settings
from app.models.employee import EmployeeRecord
from app.services.employee_service import (
    EmployeeNotFoundError,
    EmployeeQuery,
    EmployeeService,
    EmployeeStoreError,
    MissingIndexError,
    PermissionDeniedError,
    StoreNotInitializedError,
    build_sql,
    normalize_employee_document,
    translate_cosmos_error,
    utc_timestamp,
)
from tests.fakes import employee_doc

LEGACY_COSMOS_DOC = {
    "id": "legacy-1",
    "_rid": "abc==",
    "_etag": '"00000000"',
    "_ts": 1700000000,
    "employeeId": "CISS/WIPRO/2022-23/042",
    "clientName": "Wipro",
    "firstName": "Anitha",
    "lastName": "Nair",
    "phoneNumber": "9847000042",
    "idProofType": "Aadhar Card",
    "idProofNumber": "9999 8888 7777",
    "idProofDocumentUrl": "https://x.blob.core.windows.net/employee-documents/old_front.jpg",
    "idProofDocumentUrlBack": "https://x.blob.core.windows.net/employee-documents/old_back.jpg",
    "joiningDate": {"seconds": 1656633600, "nanoseconds": 0},
    "dateOfBirth": "1988-02-29T00:00:00.000Z",
    "createdAt": {"_seconds": 1656633600, "_nanoseconds": 500000000},
}


def _async_iter(items):
    async def _gen():
        for item in items:
            yield item

    return _gen()


def _service_with_container(container) -> EmployeeService:
    service = EmployeeService()
    service.container = container
    service.initialized = True
    return service


def test_utc_timestamp_format():
    from datetime import UTC, datetime

    moment = datetime(2024, 6, 1, 10, 0, 5, 123456, tzinfo=UTC)
    assert utc_timestamp(moment) == "2024-06-01T10:00:05.123456Z"


def test_normalize_strips_system_fields():
    doc = normalize_employee_document(LEGACY_COSMOS_DOC)
    assert not any(k.startswith("_") for k in doc)


def test_normalize_migrates_legacy_proof_fields():
    doc = normalize_employee_document(LEGACY_COSMOS_DOC)
    assert doc["identityProofType"] == "Aadhar Card"
    assert doc["identityProofNumber"] == "9999 8888 7777"
    assert doc["identityProofUrlFront"].endswith("old_front.jpg")
    assert doc["identityProofUrlBack"].endswith("old_back.jpg")
    assert "idProofType" not in doc
    assert "idProofDocumentUrl" not in doc


def test_normalize_keeps_current_field_over_legacy():
    raw = {"id": "x", "identityProofType": "PAN Card", "idProofType": "Voter ID"}
    assert normalize_employee_document(raw)["identityProofType"] == "PAN Card"


def test_normalize_converts_dates_and_timestamps():
    doc = normalize_employee_document(LEGACY_COSMOS_DOC)
    assert doc["joiningDate"] == "2022-07-01"
    assert doc["dateOfBirth"] == "1988-02-29"
    assert doc["createdAt"] == "2022-07-01T00:00:00.500000Z"


def test_normalize_drops_unreadable_date():
    doc = normalize_employee_document({"id": "x", "dateOfBirth": "not a date"})
    assert doc["dateOfBirth"] is None


def test_normalize_fills_derived_fields():
    doc = normalize_employee_document(LEGACY_COSMOS_DOC)
    assert doc["fullName"] == "Anitha Nair"
    assert doc["status"] == "Active"
    assert doc["searchableFields"] == ["ANITHA", "NAIR", "CISS/WIPRO/2022-23/042", "9847000042"]


def test_normalized_legacy_doc_validates_as_record():
    record = EmployeeRecord.model_validate(normalize_employee_document(LEGACY_COSMOS_DOC))
    assert record.joining_date == date(2022, 7, 1)
    assert record.identity_proof_type == "Aadhar Card"


def test_build_sql_listing_is_ordered_keyset():
    sql, params = build_sql(
        EmployeeQuery(
            equalities={"status": "Active", "clientName": "TCS"},
            after=("2024-06-01T10:00:05.000000Z", "emp-005"),
            limit=10,
        )
    )
    assert sql == (
        "SELECT TOP @limit * FROM c WHERE c.clientName = @eq0 AND c.status = @eq1 AND "
        "(c.createdAt < @afterCreatedAt OR (c.createdAt = @afterCreatedAt AND c.id < @afterId)) "
        "ORDER BY c.createdAt DESC, c.id DESC"
    )
    assert {"name": "@eq0", "value": "TCS"} in params
    assert {"name": "@afterId", "value": "emp-005"} in params
    assert {"name": "@limit", "value": 10} in params


def test_build_sql_search_is_unordered():
    sql, params = build_sql(EmployeeQuery(search_term="JANE", after=("x", "y")))
    assert sql == "SELECT * FROM c WHERE ARRAY_CONTAINS(c.searchableFields, @term)"
    assert params == [{"name": "@term", "value": "JANE"}]


def test_build_sql_without_filters():
    sql, params = build_sql(EmployeeQuery())
    assert sql == "SELECT * FROM c ORDER BY c.createdAt DESC, c.id DESC"
    assert params == []


@pytest.mark.parametrize(
    ("status_code", "message", "expected"),
    [
        (403, "Forbidden", PermissionDeniedError),
        (400, "The order by query does not have a corresponding composite index", MissingIndexError),
        (404, "Not found", EmployeeNotFoundError),
        (500, "Internal error", EmployeeStoreError),
    ],
)
def test_translate_cosmos_error(status_code, message, expected):
    err = CosmosHttpResponseError(status_code=status_code, message=message)
    translated = translate_cosmos_error(err, "load employees")
    assert type(translated) is expected


def test_translate_missing_index_mentions_fields():
    err = CosmosHttpResponseError(status_code=400, message="composite index required")
    assert "createdAt" in str(translate_cosmos_error(err, "load employees"))


@pytest.mark.anyio
async def test_initialize_without_credentials_stays_uninitialized():
    service = EmployeeService()
    await service.initialize(Settings(COSMOS_DB_ENDPOINT="", COSMOS_DB_KEY=""))
    assert service.initialized is False


@pytest.mark.anyio
async def test_uninitialized_store_raises():
    service = EmployeeService()
    with pytest.raises(StoreNotInitializedError):
        await service.get("emp-001")


@pytest.mark.anyio
async def test_get_returns_normalized_record():
    container = MagicMock()
    container.read_item = AsyncMock(return_value=dict(LEGACY_COSMOS_DOC))
    service = _service_with_container(container)

    record = await service.get("legacy-1")

    assert record.full_name == "Anitha Nair"
    container.read_item.assert_awaited_once_with(item="legacy-1", partition_key="legacy-1")


@pytest.mark.anyio
async def test_get_missing_returns_none():
    container = MagicMock()
    container.read_item = AsyncMock(side_effect=CosmosResourceNotFoundError(status_code=404, message="gone"))
    service = _service_with_container(container)

    assert await service.get("nope") is None


@pytest.mark.anyio
async def test_create_stores_dates_as_iso_strings():
    container = MagicMock()
    container.create_item = AsyncMock(side_effect=lambda body: body)
    service = _service_with_container(container)

    record = await service.create({**employee_doc(1), "joiningDate": date(2024, 6, 1)})

    body = container.create_item.call_args.kwargs["body"]
    assert body["joiningDate"] == "2024-06-01"
    assert record.joining_date == date(2024, 6, 1)


@pytest.mark.anyio
async def test_create_rejects_unreadable_document_before_writing():
    container = MagicMock()
    container.create_item = AsyncMock(side_effect=lambda body: body)
    service = _service_with_container(container)

    with pytest.raises(ValueError, match="status"):
        await service.create(employee_doc(1, status="Terminated"))

    container.create_item.assert_not_awaited()


@pytest.mark.anyio
async def test_patch_splits_operations_into_batches_of_ten():
    container = MagicMock()
    container.patch_item = AsyncMock(return_value=employee_doc(1))
    service = _service_with_container(container)

    fields = {f"field{i}": i for i in range(12)}
    await service.patch("emp-001", fields)

    assert container.patch_item.await_count == 2
    first, second = container.patch_item.await_args_list
    assert len(first.kwargs["patch_operations"]) == 10
    assert len(second.kwargs["patch_operations"]) == 2
    assert first.kwargs["patch_operations"][0] == {"op": "set", "path": "/field0", "value": 0}


@pytest.mark.anyio
async def test_patch_only_removes_present_fields():
    container = MagicMock()
    container.read_item = AsyncMock(return_value=employee_doc(1, exitDate="2024-07-01"))
    container.patch_item = AsyncMock(return_value=employee_doc(1))
    service = _service_with_container(container)

    await service.patch("emp-001", {"status": "Active"}, remove_fields=["exitDate", "spouseName"])

    ops = container.patch_item.await_args.kwargs["patch_operations"]
    assert {"op": "remove", "path": "/exitDate"} in ops
    assert {"op": "remove", "path": "/spouseName"} not in ops


@pytest.mark.anyio
async def test_patch_missing_employee_raises_not_found():
    container = MagicMock()
    container.patch_item = AsyncMock(side_effect=CosmosResourceNotFoundError(status_code=404, message="gone"))
    service = _service_with_container(container)

    with pytest.raises(EmployeeNotFoundError):
        await service.patch("nope", {"status": "Active"})


@pytest.mark.anyio
async def test_delete_missing_employee_raises_not_found():
    container = MagicMock()
    container.delete_item = AsyncMock(side_effect=CosmosResourceNotFoundError(status_code=404, message="gone"))
    service = _service_with_container(container)

    with pytest.raises(EmployeeNotFoundError):
        await service.delete("nope")


@pytest.mark.anyio
async def test_query_passes_sql_and_normalizes_rows():
    container = MagicMock()
    container.query_items = MagicMock(return_value=_async_iter([employee_doc(2), employee_doc(1)]))
    service = _service_with_container(container)

    records = await service.query(EmployeeQuery(equalities={"status": "Active"}, limit=10))

    assert [r.id for r in records] == ["emp-002", "emp-001"]
    kwargs = container.query_items.call_args.kwargs
    assert kwargs["query"].startswith("SELECT TOP @limit * FROM c WHERE c.status = @eq0")
    assert kwargs["enable_cross_partition_query"] is True


@pytest.mark.anyio
async def test_query_forbidden_raises_permission_denied():
    async def _failing():
        raise CosmosHttpResponseError(status_code=403, message="Forbidden")
        yield  # pragma: no cover

    container = MagicMock()
    container.query_items = MagicMock(return_value=_failing())
    service = _service_with_container(container)

    with pytest.raises(PermissionDeniedError):
        await service.query(EmployeeQuery())


@pytest.mark.anyio
async def test_check_connection_without_container():
    service = EmployeeService()
    assert await service.check_connection() is False
