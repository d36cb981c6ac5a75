"""Record models for the dual-store repository."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal


@dataclass(frozen=True)
class OwnerLink:
    """Links records of a kind to an owning record through an index set."""

    owner_kind: str
    owner_field: str
    index_name: str

    def index_key(self, owner_id: str) -> str:
        """Return the primary-store key of the owner's membership set."""
        return f"{self.owner_kind}:{owner_id}:{self.index_name}"


@dataclass(frozen=True)
class RecordKind:
    """Describes how one kind of record is keyed and mirrored."""

    name: str
    collection: str
    description: str
    owner: OwnerLink | None = None

    def key(self, record_id: str) -> str:
        """Return the primary-store key for a record id."""
        return f"{self.name}:{record_id}"


USERS = RecordKind(
    name="user",
    collection="users",
    description="User profiles for semantic search",
)

CONDITIONS = RecordKind(
    name="condition",
    collection="health_conditions",
    description="Health conditions for semantic search",
    owner=OwnerLink(owner_kind="user", owner_field="user_id", index_name="conditions"),
)


@dataclass(frozen=True)
class Record:
    """A stored record with decoded fields."""

    kind: str
    id: str
    fields: dict[str, object]
    created_at: datetime
    updated_at: datetime | None = None


@dataclass(frozen=True)
class IndexMatch:
    """A ranked hit from the secondary index."""

    id: str
    metadata: dict[str, object]
    distance: float | None = None


@dataclass(frozen=True)
class StoreOperation:
    """A single primary-store mutation, applied inside an atomic batch."""

    action: Literal["set_fields", "add_to_set", "remove_from_set", "delete"]
    key: str
    fields: dict[str, str] = field(default_factory=dict)
    member: str | None = None


@dataclass(frozen=True)
class MirrorOutcome:
    """Result of a background write to the secondary index."""

    kind: str
    record_id: str
    action: Literal["upsert", "delete"]
    ok: bool
    error: str | None = None
