"""Record persistence over a primary store with a mirrored search index.

The primary store is the only source of truth. Every successful primary
write schedules a background mirror of the record into the secondary index;
mirror failures are logged and reported to observers, never to callers.
"""

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Literal, Protocol, TypeVar
from uuid import uuid4

from nutrition_planner.domain.errors import SecondaryIndexError, StoreUnavailableError
from nutrition_planner.domain.records import (
    IndexMatch,
    MirrorOutcome,
    Record,
    RecordKind,
    StoreOperation,
)

_logger = logging.getLogger(__name__)

_T = TypeVar("_T")

SYSTEM_FIELDS = ("id", "createdAt", "updatedAt")

MirrorObserver = Callable[[MirrorOutcome], None]


class PrimaryStore(Protocol):
    """Authoritative hash and set storage."""

    async def set_fields(self, key: str, fields: Mapping[str, str]) -> None:
        """Set hash fields on a key."""

    async def get_all_fields(self, key: str) -> dict[str, str]:
        """Return all hash fields, empty when the key is missing."""

    async def add_to_set(self, key: str, member: str) -> None:
        """Add a member to a set."""

    async def remove_from_set(self, key: str, member: str) -> None:
        """Remove a member from a set."""

    async def set_members(self, key: str) -> set[str]:
        """Return the members of a set."""

    async def delete(self, key: str) -> None:
        """Delete a key."""

    async def exists(self, key: str) -> bool:
        """Return whether a key exists."""

    async def execute_atomic(self, operations: Sequence[StoreOperation]) -> None:
        """Apply all operations as one atomic unit."""


class SecondaryIndex(Protocol):
    """Search-optimized projection of records."""

    async def upsert(
        self,
        collection: str,
        record_id: str,
        metadata: Mapping[str, str | int | float | bool],
        document: str,
    ) -> None:
        """Insert or replace a record projection."""

    async def query(self, collection: str, text: str, limit: int) -> list[IndexMatch]:
        """Return the nearest matches for a text query, best first."""

    async def delete(self, collection: str, record_id: str) -> None:
        """Remove a record projection."""


@dataclass
class DualStoreRepository:
    """CRUD over the primary store with best-effort index mirroring."""

    primary: PrimaryStore
    secondary: SecondaryIndex | None
    primary_timeout_seconds: float = 5.0
    secondary_timeout_seconds: float = 10.0
    observers: list[MirrorObserver] = field(default_factory=list)
    _pending: set["asyncio.Task[MirrorOutcome]"] = field(
        default_factory=set, init=False, repr=False
    )

    async def create(self, kind: RecordKind, data: Mapping[str, object]) -> Record:
        """Create a record and link it to its owner in one atomic write."""
        record_id = uuid4().hex
        now = datetime.now(tz=UTC)
        fields = _strip_system_fields(data)
        stored = {**fields, "id": record_id, "createdAt": now.isoformat()}
        operations = [
            StoreOperation(
                action="set_fields",
                key=kind.key(record_id),
                fields=encode_fields(stored),
            )
        ]
        owner_id = _owner_id(kind, fields)
        if kind.owner is not None and owner_id is not None:
            operations.append(
                StoreOperation(
                    action="add_to_set",
                    key=kind.owner.index_key(owner_id),
                    member=record_id,
                )
            )
        await self._primary(
            self.primary.execute_atomic(operations), action=f"create {kind.name}"
        )
        record = Record(kind=kind.name, id=record_id, fields=fields, created_at=now)
        self._mirror_upsert(kind, record)
        return record

    async def get(self, kind: RecordKind, record_id: str) -> Record | None:
        """Return a record from the primary store."""
        raw = await self._primary(
            self.primary.get_all_fields(kind.key(record_id)),
            action=f"get {kind.name}",
        )
        if not raw:
            return None
        return record_from_fields(kind.name, record_id, decode_fields(raw))

    async def update(
        self, kind: RecordKind, record_id: str, data: Mapping[str, object]
    ) -> Record | None:
        """Merge fields into an existing record; missing records stay missing."""
        key = kind.key(record_id)
        existing = await self._primary(
            self.primary.get_all_fields(key), action=f"read {kind.name}"
        )
        if not existing:
            return None
        fields = _strip_system_fields(data)
        stored = {
            **fields,
            "id": record_id,
            "updatedAt": datetime.now(tz=UTC).isoformat(),
        }
        await self._primary(
            self.primary.set_fields(key, encode_fields(stored)),
            action=f"update {kind.name}",
        )
        record = record_from_fields(
            kind.name, record_id, {**decode_fields(existing), **stored}
        )
        self._mirror_upsert(kind, record)
        return record

    async def delete(self, kind: RecordKind, record_id: str) -> bool:
        """Delete a record and its owner link in one atomic write."""
        record = await self.get(kind, record_id)
        if record is None:
            return False
        operations = [StoreOperation(action="delete", key=kind.key(record_id))]
        owner_id = _owner_id(kind, record.fields)
        if kind.owner is not None and owner_id is not None:
            operations.append(
                StoreOperation(
                    action="remove_from_set",
                    key=kind.owner.index_key(owner_id),
                    member=record_id,
                )
            )
        await self._primary(
            self.primary.execute_atomic(operations), action=f"delete {kind.name}"
        )
        self._schedule(
            kind,
            record_id,
            "delete",
            lambda index: index.delete(kind.collection, record_id),
        )
        return True

    async def list_owned(self, kind: RecordKind, owner_id: str) -> list[Record]:
        """Return records of a kind linked to an owner."""
        if kind.owner is None:
            raise ValueError(f"Record kind {kind.name} has no owner link")
        members = await self._primary(
            self.primary.set_members(kind.owner.index_key(owner_id)),
            action=f"list {kind.name}",
        )
        records = await asyncio.gather(
            *(self.get(kind, member) for member in sorted(members))
        )
        owned = [record for record in records if record is not None]
        return sorted(owned, key=lambda record: record.created_at)

    async def search(self, kind: RecordKind, text: str, limit: int = 5) -> list[Record]:
        """Semantic search over the index; unreachable index yields no results."""
        if self.secondary is None:
            return []
        try:
            matches = await asyncio.wait_for(
                self.secondary.query(kind.collection, text, limit),
                timeout=self.secondary_timeout_seconds,
            )
        except Exception as exc:
            _logger.warning("Search in %s failed: %s", kind.collection, exc)
            return []
        results: list[Record] = []
        for match in matches:
            try:
                fields = decode_fields(
                    {str(k): str(v) for k, v in match.metadata.items()}
                )
                results.append(record_from_fields(kind.name, match.id, fields))
            except (KeyError, ValueError) as exc:
                _logger.warning("Skipping malformed index entry %s: %s", match.id, exc)
        return results

    async def drain(self) -> list[MirrorOutcome]:
        """Wait for all scheduled mirror writes to finish."""
        outcomes: list[MirrorOutcome] = []
        while self._pending:
            batch = list(self._pending)
            self._pending.difference_update(batch)
            outcomes.extend(await asyncio.gather(*batch))
        return outcomes

    async def _primary(self, call: Awaitable[_T], *, action: str) -> _T:
        """Await a primary-store call, mapping failures to StoreUnavailableError."""
        try:
            return await asyncio.wait_for(call, timeout=self.primary_timeout_seconds)
        except TimeoutError as exc:
            raise StoreUnavailableError(
                f"Primary store timed out during {action}"
            ) from exc
        except Exception as exc:
            raise StoreUnavailableError(
                f"Primary store failed during {action}: {exc}"
            ) from exc

    def _mirror_upsert(self, kind: RecordKind, record: Record) -> None:
        metadata = index_metadata(record)
        document = json.dumps(record.fields, default=str, sort_keys=True)
        self._schedule(
            kind,
            record.id,
            "upsert",
            lambda index: index.upsert(kind.collection, record.id, metadata, document),
        )

    def _schedule(
        self,
        kind: RecordKind,
        record_id: str,
        action: Literal["upsert", "delete"],
        write: Callable[[SecondaryIndex], Awaitable[None]],
    ) -> None:
        """Run a mirror write in the background of the caller."""
        if self.secondary is None:
            return
        task = asyncio.create_task(
            self._run_mirror(kind, record_id, action, write(self.secondary))
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _run_mirror(
        self,
        kind: RecordKind,
        record_id: str,
        action: Literal["upsert", "delete"],
        write: Awaitable[None],
    ) -> MirrorOutcome:
        try:
            await asyncio.wait_for(write, timeout=self.secondary_timeout_seconds)
        except Exception as exc:
            error = SecondaryIndexError(
                f"Secondary index {action} failed for {kind.name} {record_id}: "
                f"{exc!r}"
            )
            _logger.warning("%s", error)
            outcome = MirrorOutcome(
                kind=kind.name,
                record_id=record_id,
                action=action,
                ok=False,
                error=str(error),
            )
        else:
            outcome = MirrorOutcome(
                kind=kind.name, record_id=record_id, action=action, ok=True
            )
        self._notify(outcome)
        return outcome

    def _notify(self, outcome: MirrorOutcome) -> None:
        for observer in self.observers:
            try:
                observer(outcome)
            except Exception:
                _logger.exception("Mirror observer failed")


def encode_fields(fields: Mapping[str, object]) -> dict[str, str]:
    """JSON-encode each field value for hash storage."""
    return {name: json.dumps(value, default=str) for name, value in fields.items()}


def decode_fields(raw: Mapping[str, str]) -> dict[str, object]:
    """Decode hash fields, keeping values that are not valid JSON as strings."""
    decoded: dict[str, object] = {}
    for name, value in raw.items():
        try:
            decoded[name] = json.loads(value)
        except ValueError:
            decoded[name] = value
    return decoded


def record_from_fields(kind: str, record_id: str, fields: dict[str, object]) -> Record:
    """Split system fields from decoded data fields."""
    created_raw = fields.get("createdAt")
    updated_raw = fields.get("updatedAt")
    if not isinstance(created_raw, str):
        raise KeyError("createdAt")
    return Record(
        kind=kind,
        id=str(fields.get("id", record_id)),
        fields=_strip_system_fields(fields),
        created_at=datetime.fromisoformat(created_raw),
        updated_at=(
            datetime.fromisoformat(updated_raw)
            if isinstance(updated_raw, str)
            else None
        ),
    )


def index_metadata(record: Record) -> dict[str, str]:
    """Flatten a record into index metadata, mirroring the hash encoding."""
    stored: dict[str, object] = {
        **record.fields,
        "id": record.id,
        "createdAt": record.created_at.isoformat(),
    }
    if record.updated_at is not None:
        stored["updatedAt"] = record.updated_at.isoformat()
    return encode_fields(stored)


def _strip_system_fields(data: Mapping[str, object]) -> dict[str, object]:
    return {k: v for k, v in data.items() if k not in SYSTEM_FIELDS}


def _owner_id(kind: RecordKind, fields: Mapping[str, object]) -> str | None:
    if kind.owner is None:
        return None
    value = fields.get(kind.owner.owner_field)
    return str(value) if value else None
