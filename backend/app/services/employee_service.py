"""Cosmos DB employee store."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from typing import Any

from azure.cosmos.aio import CosmosClient
from azure.cosmos.exceptions import CosmosHttpResponseError, CosmosResourceNotFoundError

from app.core.config import Settings
from app.models.employee import EmployeeRecord
from app.services.employee_id import build_searchable_fields

logger = logging.getLogger(__name__)

# Cosmos DB accepts at most 10 operations per patch request.
PATCH_BATCH_SIZE = 10

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

_DATE_FIELDS = ("dateOfBirth", "joiningDate", "exitDate")
_TIMESTAMP_FIELDS = ("createdAt", "updatedAt")

# Legacy field -> current field. The first legacy field present wins.
_LEGACY_FIELDS: list[tuple[str, tuple[str, ...]]] = [
    ("identityProofType", ("idProofType",)),
    ("identityProofNumber", ("idProofNumber",)),
    ("identityProofUrlFront", ("idProofDocumentUrlFront", "idProofDocumentUrl")),
    ("identityProofUrlBack", ("idProofDocumentUrlBack",)),
]


class EmployeeStoreError(Exception):
    pass


class EmployeeNotFoundError(EmployeeStoreError):
    pass


class PermissionDeniedError(EmployeeStoreError):
    pass


class MissingIndexError(EmployeeStoreError):
    pass


class StoreNotInitializedError(EmployeeStoreError):
    pass


def utc_timestamp(moment: datetime | None = None) -> str:
    """Fixed-width UTC timestamp; lexical order equals time order."""
    moment = moment or datetime.now(UTC)
    return moment.astimezone(UTC).strftime(TIMESTAMP_FORMAT)


def _epoch_seconds(value: dict[str, Any]) -> float | None:
    seconds = value.get("seconds", value.get("_seconds"))
    if seconds is None:
        return None
    nanos = value.get("nanoseconds", value.get("_nanoseconds")) or 0
    return float(seconds) + nanos / 1e9


def _to_datetime(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=UTC)
    if isinstance(value, dict):
        seconds = _epoch_seconds(value)
        return datetime.fromtimestamp(seconds, tz=UTC) if seconds is not None else None
    if isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    return None


def _normalize_date(value: Any) -> str | None:
    if value is None or value == "":
        return None
    if isinstance(value, str) and "T" not in value:
        try:
            return date.fromisoformat(value).isoformat()
        except ValueError:
            pass
    moment = _to_datetime(value)
    if moment is None:
        logger.warning("Unreadable date value %r dropped", value)
        return None
    return moment.date().isoformat()


def normalize_employee_document(raw: dict[str, Any]) -> dict[str, Any]:
    """Migrate a stored document of any schema version to the current shape."""
    doc = {k: v for k, v in raw.items() if not k.startswith("_")}

    for current, legacy_names in _LEGACY_FIELDS:
        for legacy in legacy_names:
            legacy_value = doc.pop(legacy, None)
            if legacy_value and not doc.get(current):
                doc[current] = legacy_value

    for name in _DATE_FIELDS:
        if name in doc:
            doc[name] = _normalize_date(doc[name])

    for name in _TIMESTAMP_FIELDS:
        if name in doc and not isinstance(doc[name], str):
            moment = _to_datetime(doc[name])
            doc[name] = utc_timestamp(moment) if moment else None

    if not doc.get("fullName"):
        doc["fullName"] = f"{doc.get('firstName') or ''} {doc.get('lastName') or ''}".strip()

    if not doc.get("searchableFields"):
        doc["searchableFields"] = build_searchable_fields(
            doc.get("fullName") or "",
            doc.get("employeeId") or "",
            doc.get("phoneNumber") or "",
        )

    if not doc.get("status"):
        doc["status"] = "Active"

    return doc


def to_stored_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return utc_timestamp(value)
    if isinstance(value, date):
        return value.isoformat()
    return value


@dataclass
class EmployeeQuery:
    """Parameters of one directory query.

    ``after`` is the ``(createdAt, id)`` of the last row of the previous page.
    Ordering and ``after`` only apply when no search term is given.
    """

    equalities: dict[str, str] = field(default_factory=dict)
    search_term: str | None = None
    after: tuple[str, str] | None = None
    limit: int | None = None

    @property
    def ordered(self) -> bool:
        return not self.search_term


def build_sql(query: EmployeeQuery) -> tuple[str, list[dict[str, Any]]]:
    clauses: list[str] = []
    params: list[dict[str, Any]] = []

    for i, (name, value) in enumerate(sorted(query.equalities.items())):
        clauses.append(f"c.{name} = @eq{i}")
        params.append({"name": f"@eq{i}", "value": value})

    if query.search_term:
        clauses.append("ARRAY_CONTAINS(c.searchableFields, @term)")
        params.append({"name": "@term", "value": query.search_term})
    elif query.after is not None:
        clauses.append("(c.createdAt < @afterCreatedAt OR (c.createdAt = @afterCreatedAt AND c.id < @afterId))")
        params.append({"name": "@afterCreatedAt", "value": query.after[0]})
        params.append({"name": "@afterId", "value": query.after[1]})

    select = "SELECT"
    if query.limit is not None:
        select += " TOP @limit"
        params.append({"name": "@limit", "value": query.limit})

    sql = f"{select} * FROM c"
    if clauses:
        sql += " WHERE " + " AND ".join(clauses)
    if query.ordered:
        sql += " ORDER BY c.createdAt DESC, c.id DESC"
    return sql, params


def translate_cosmos_error(err: CosmosHttpResponseError, action: str) -> EmployeeStoreError:
    message = str(err.message or err)
    if err.status_code == 403:
        return PermissionDeniedError(f"Permission denied while trying to {action}.")
    if err.status_code == 400 and ("index" in message.lower() or "order by" in message.lower()):
        return MissingIndexError(
            f"The database needs a composite index to {action}. Create it on createdAt and id (descending)."
        )
    if err.status_code == 404:
        return EmployeeNotFoundError(f"Employee not found while trying to {action}.")
    return EmployeeStoreError(f"Could not {action}: {message}")


class EmployeeService:
    def __init__(self) -> None:
        self.client: CosmosClient | None = None
        self.container: Any = None
        self.initialized: bool = False

    async def initialize(self, settings: Settings) -> None:
        if self.initialized:
            return

        endpoint = settings.COSMOS_DB_ENDPOINT
        key = settings.COSMOS_DB_KEY
        container_name = settings.COSMOS_DB_EMPLOYEES_CONTAINER

        if not endpoint or not key:
            logger.warning("Cosmos DB credentials missing — EmployeeService not initialized")
            return

        self.client = CosmosClient(endpoint, key)
        db = self.client.get_database_client(settings.COSMOS_DB_DATABASE)
        self.container = db.get_container_client(container_name)
        self.initialized = True
        logger.info("EmployeeService initialized (container=%s)", container_name)

    async def close(self) -> None:
        if self.client:
            await self.client.close()
            self.client = None
            self.container = None
            self.initialized = False

    def _require_container(self) -> Any:
        if not self.container:
            raise StoreNotInitializedError("Employee store not initialized")
        return self.container

    async def create(self, document: dict[str, Any]) -> EmployeeRecord:
        container = self._require_container()
        body = {k: to_stored_value(v) for k, v in document.items()}
        # A document that cannot be read back must never reach the container.
        EmployeeRecord.model_validate(normalize_employee_document(body))
        try:
            created = await container.create_item(body=body)
        except CosmosHttpResponseError as e:
            raise translate_cosmos_error(e, "create the employee record") from e
        return EmployeeRecord.model_validate(normalize_employee_document(created))

    async def get_raw(self, employee_id: str) -> dict[str, Any] | None:
        container = self._require_container()
        try:
            return await container.read_item(item=employee_id, partition_key=employee_id)
        except CosmosResourceNotFoundError:
            return None
        except CosmosHttpResponseError as e:
            raise translate_cosmos_error(e, "load the employee") from e

    async def get(self, employee_id: str) -> EmployeeRecord | None:
        raw = await self.get_raw(employee_id)
        if raw is None:
            return None
        return EmployeeRecord.model_validate(normalize_employee_document(raw))

    async def patch(
        self,
        employee_id: str,
        set_fields: dict[str, Any],
        remove_fields: list[str] | tuple[str, ...] = (),
    ) -> EmployeeRecord:
        """Partial update: only the given keys are written."""
        container = self._require_container()

        if remove_fields:
            # Removing an absent path is an error in Cosmos DB.
            current = await self.get_raw(employee_id)
            if current is None:
                raise EmployeeNotFoundError(f"Employee {employee_id} not found")
            remove_fields = [name for name in remove_fields if name in current]

        operations: list[dict[str, Any]] = [
            {"op": "set", "path": f"/{name}", "value": to_stored_value(value)} for name, value in set_fields.items()
        ]
        operations += [{"op": "remove", "path": f"/{name}"} for name in remove_fields]
        if not operations:
            record = await self.get(employee_id)
            if record is None:
                raise EmployeeNotFoundError(f"Employee {employee_id} not found")
            return record

        updated: dict[str, Any] = {}
        try:
            for start in range(0, len(operations), PATCH_BATCH_SIZE):
                updated = await container.patch_item(
                    item=employee_id,
                    partition_key=employee_id,
                    patch_operations=operations[start : start + PATCH_BATCH_SIZE],
                )
        except CosmosResourceNotFoundError as e:
            raise EmployeeNotFoundError(f"Employee {employee_id} not found") from e
        except CosmosHttpResponseError as e:
            raise translate_cosmos_error(e, "update the employee") from e
        return EmployeeRecord.model_validate(normalize_employee_document(updated))

    async def delete(self, employee_id: str) -> None:
        container = self._require_container()
        try:
            await container.delete_item(item=employee_id, partition_key=employee_id)
        except CosmosResourceNotFoundError as e:
            raise EmployeeNotFoundError(f"Employee {employee_id} not found") from e
        except CosmosHttpResponseError as e:
            raise translate_cosmos_error(e, "delete the employee") from e

    async def iterate(self, query: EmployeeQuery) -> AsyncIterator[EmployeeRecord]:
        container = self._require_container()
        sql, params = build_sql(query)
        try:
            async for item in container.query_items(
                query=sql,
                parameters=params,
                enable_cross_partition_query=True,
            ):
                yield EmployeeRecord.model_validate(normalize_employee_document(item))
        except CosmosHttpResponseError as e:
            raise translate_cosmos_error(e, "load employees") from e

    async def query(self, query: EmployeeQuery) -> list[EmployeeRecord]:
        return [record async for record in self.iterate(query)]

    async def check_connection(self) -> bool:
        if not self.container:
            return False
        try:
            query = "SELECT VALUE COUNT(1) FROM c"
            async for _ in self.container.query_items(
                query=query,
                enable_cross_partition_query=True,
            ):
                return True
            return True
        except Exception:
            logger.exception("Cosmos DB connection check failed")
            return False


employee_service = EmployeeService()
