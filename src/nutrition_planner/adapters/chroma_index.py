"""ChromaDB-backed secondary search index."""

import asyncio
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

import chromadb
from chromadb.config import Settings as ChromaSettings

from nutrition_planner.domain.records import CONDITIONS, USERS, IndexMatch
from nutrition_planner.services.records import SecondaryIndex

COLLECTION_DESCRIPTIONS = {
    USERS.collection: USERS.description,
    CONDITIONS.collection: CONDITIONS.description,
}


@dataclass
class ChromaSecondaryIndex(SecondaryIndex):
    """Secondary index over Chroma collections.

    The client is created on first use so an unreachable Chroma server never
    blocks startup. Chroma's client is synchronous; calls run in a worker
    thread.
    """

    client_factory: Callable[[], Any]
    descriptions: Mapping[str, str] = field(
        default_factory=lambda: dict(COLLECTION_DESCRIPTIONS)
    )
    _client: Any = field(default=None, init=False, repr=False)

    @classmethod
    def create(cls, host: str, port: int) -> "ChromaSecondaryIndex":
        """Create an index talking to a Chroma server over HTTP."""
        return cls(
            client_factory=lambda: chromadb.HttpClient(
                host=host,
                port=port,
                settings=ChromaSettings(anonymized_telemetry=False),
            )
        )

    async def upsert(
        self,
        collection: str,
        record_id: str,
        metadata: Mapping[str, str | int | float | bool],
        document: str,
    ) -> None:
        """Insert or replace a record projection."""

        def _upsert() -> None:
            self._collection(collection).upsert(
                ids=[record_id], metadatas=[dict(metadata)], documents=[document]
            )

        await asyncio.to_thread(_upsert)

    async def query(self, collection: str, text: str, limit: int) -> list[IndexMatch]:
        """Return the nearest matches for a text query."""

        def _query() -> list[IndexMatch]:
            target = self._collection(collection)
            if target.count() == 0:
                return []
            results = target.query(query_texts=[text], n_results=limit)
            ids = (results.get("ids") or [[]])[0]
            metadatas = (results.get("metadatas") or [[]])[0] or [{}] * len(ids)
            distances = (results.get("distances") or [[]])[0] or [None] * len(ids)
            return [
                IndexMatch(id=match_id, metadata=dict(meta or {}), distance=distance)
                for match_id, meta, distance in zip(
                    ids, metadatas, distances, strict=False
                )
            ]

        return await asyncio.to_thread(_query)

    async def delete(self, collection: str, record_id: str) -> None:
        """Remove a record projection."""

        def _delete() -> None:
            self._collection(collection).delete(ids=[record_id])

        await asyncio.to_thread(_delete)

    def _collection(self, name: str) -> Any:
        if self._client is None:
            self._client = self.client_factory()
        metadata = {"description": self.descriptions.get(name, name)}
        return self._client.get_or_create_collection(name=name, metadata=metadata)
