"""Pure Python in-memory store for unit testing."""

import asyncio
import copy
from datetime import UTC, datetime
from typing import Any

from src.core.db_client import DatabaseError, RecordNotFoundError


def _now_iso() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


class InMemoryDBClient:
    """In-memory stand-in for the db_client module functions.

    Supports the same CRUD surface as src.core.db_client (including upsert)
    plus simple filtering and sorting. Failures can be injected per
    operation and collection with ``fail_on`` to exercise error paths.
    """

    def __init__(self):
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._id_counter = 1000
        self._failures: dict[tuple[str, str], int] = {}

    def fail_on(self, operation: str, collection: str, *, times: int = 1) -> None:
        """Make the next `times` calls of operation on collection raise DatabaseError."""
        self._failures[(operation, collection)] = times

    def _maybe_fail(self, operation: str, collection: str) -> None:
        remaining = self._failures.get((operation, collection), 0)
        if remaining > 0:
            self._failures[(operation, collection)] = remaining - 1
            raise DatabaseError(f"Failed to {operation} in {collection}: injected failure")

    def records(self, collection: str) -> dict[str, dict[str, Any]]:
        """Direct access to stored records (for assertions)."""
        return self._collections.setdefault(collection, {})

    async def create_record(self, collection: str, data: dict[str, Any]) -> dict[str, Any]:
        """Create a record with a generated id and created/updated timestamps.

        Raises:
            DatabaseError: If data is not a dict or a failure was injected
        """
        if not isinstance(data, dict):
            raise DatabaseError(f"Data must be a dictionary, got {type(data)}")
        self._maybe_fail("create", collection)

        record_id = str(self._id_counter)
        self._id_counter += 1

        now = _now_iso()
        record = {"id": record_id, "created": now, "updated": now, **data}
        self.records(collection)[record_id] = record
        return copy.deepcopy(record)

    async def get_record(self, collection: str, record_id: str) -> dict[str, Any]:
        """Get a record by ID.

        Raises:
            RecordNotFoundError: If record not found
            DatabaseError: For other failures
        """
        if not isinstance(record_id, str):
            raise DatabaseError(f"Record ID must be a string, got {type(record_id)}")
        self._maybe_fail("get", collection)

        if record_id not in self._collections.get(collection, {}):
            raise RecordNotFoundError(f"Record not found in {collection}: {record_id}")
        return copy.deepcopy(self._collections[collection][record_id])

    async def update_record(self, collection: str, record_id: str, data: dict[str, Any]) -> dict[str, Any]:
        """Apply a partial update to an existing record.

        Raises:
            RecordNotFoundError: If record not found
            DatabaseError: For other failures
        """
        if not isinstance(data, dict):
            raise DatabaseError(f"Data must be a dictionary, got {type(data)}")
        if not isinstance(record_id, str):
            raise DatabaseError(f"Record ID must be a string, got {type(record_id)}")
        self._maybe_fail("update", collection)

        if record_id not in self._collections.get(collection, {}):
            raise RecordNotFoundError(f"Record not found in {collection}: {record_id}")

        # Yield so concurrent callers can interleave, like a real store round-trip
        await asyncio.sleep(0.001)
        record = self._collections[collection][record_id]
        record.update(data)
        record["updated"] = _now_iso()
        return copy.deepcopy(record)

    async def upsert_record(self, collection: str, record_id: str, data: dict[str, Any]) -> dict[str, Any]:
        """Create the record with the given ID or overwrite the given fields."""
        self._maybe_fail("upsert", collection)

        now = _now_iso()
        records = self.records(collection)
        if record_id in records:
            records[record_id].update({**data, "updated": now})
        else:
            records[record_id] = {"id": record_id, "created": now, "updated": now, **data}
        return copy.deepcopy(records[record_id])

    async def delete_record(self, collection: str, record_id: str) -> None:
        """Delete a record.

        Raises:
            RecordNotFoundError: If record not found
        """
        self._maybe_fail("delete", collection)
        if record_id not in self._collections.get(collection, {}):
            raise RecordNotFoundError(f"Record not found in {collection}: {record_id}")
        del self._collections[collection][record_id]

    async def list_records(
        self,
        collection: str,
        page: int = 1,
        per_page: int = 50,
        filter_query: str = "",
        sort: str = "",
    ) -> list[dict[str, Any]]:
        """List records with optional filtering (=, !=, >, <, ~, &&), sorting and pagination."""
        self._maybe_fail("list", collection)

        records = list(self._collections.get(collection, {}).values())
        if filter_query:
            records = [r for r in records if self._parse_filter(filter_query, r)]
        if sort:
            records = self._apply_sort(records, sort)

        start_idx = (page - 1) * per_page
        return [copy.deepcopy(r) for r in records[start_idx : start_idx + per_page]]

    async def count_records(self, collection: str, filter_query: str = "") -> int:
        self._maybe_fail("count", collection)

        records = list(self._collections.get(collection, {}).values())
        if filter_query:
            records = [r for r in records if self._parse_filter(filter_query, r)]
        return len(records)

    async def get_first_record(self, collection: str, filter_query: str) -> dict[str, Any] | None:
        records = await self.list_records(collection, filter_query=filter_query, per_page=1)
        return records[0] if records else None

    def _parse_filter(self, filter_str: str, record: dict[str, Any]) -> bool:
        """Evaluate a filter expression against a record.

        Raises:
            DatabaseError: For invalid filter syntax
        """
        if "&&" in filter_str:
            return all(self._parse_filter(cond.strip(), record) for cond in filter_str.split("&&"))

        for operator in ("!=", ">", "<", "~", "="):
            if operator not in filter_str:
                continue
            field, raw_value = (part.strip() for part in filter_str.split(operator, 1))
            value = raw_value.strip("'\"")

            if operator == "!=":
                return str(record.get(field, "")) != value
            if operator in (">", "<"):
                if record.get(field) is None:
                    return False
                if operator == ">":
                    return float(record[field]) > float(value)
                return float(record[field]) < float(value)
            if operator == "~":
                return value.lower() in str(record.get(field, "")).lower()
            if value.lower() in ("true", "false"):
                return bool(record.get(field)) == (value.lower() == "true")
            return str(record.get(field, "")) == value

        raise DatabaseError(f"Invalid filter syntax (no operator found): {filter_str}")

    def _apply_sort(self, records: list[dict], sort: str) -> list[dict]:
        reverse = sort.startswith("-")
        field = sort.lstrip("-")
        return sorted(records, key=lambda r: r.get(field, ""), reverse=reverse)
