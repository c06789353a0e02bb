"""Local knowledge store used for conversation context and local tools."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Awaitable, Protocol, runtime_checkable

import chromadb

from packages.core.schemas.models import SearchResult

logger = logging.getLogger(__name__)


@runtime_checkable
class KnowledgeStore(Protocol):
    """Anything that can answer a text query over the user's indexed data.

    ``search`` may be sync or async; callers await the result when needed.
    """

    def search(
        self,
        query: str,
        limit: int = 5,
        source: str | None = None,
    ) -> list[SearchResult] | Awaitable[list[SearchResult]]:
        ...


class ChromaKnowledgeStore:
    """Knowledge store backed by a persistent Chroma collection."""

    def __init__(
        self,
        storage_path: str = "data/knowledge",
        collection_name: str = "user_knowledge",
        client: Any | None = None,
        embedding_function: Any | None = None,
    ):
        if client is None:
            chroma_path = Path(storage_path) / "chroma"
            chroma_path.mkdir(parents=True, exist_ok=True)
            client = chromadb.PersistentClient(path=str(chroma_path))
        self._client = client
        options: dict[str, Any] = {}
        if embedding_function is not None:
            options["embedding_function"] = embedding_function
        self._collection = client.get_or_create_collection(name=collection_name, **options)

    def add(
        self,
        doc_id: str,
        content: str,
        title: str = "",
        source: str = "local_file",
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Index one piece of content. ``source`` scopes later searches."""
        meta = {"title": title, "source": source}
        # Chroma only stores scalar metadata values
        meta.update({k: v for k, v in (metadata or {}).items() if isinstance(v, (str, int, float, bool))})
        self._collection.upsert(ids=[doc_id], documents=[content], metadatas=[meta])

    def delete(self, doc_id: str) -> None:
        self._collection.delete(ids=[doc_id])

    def count(self) -> int:
        return self._collection.count()

    def search(self, query: str, limit: int = 5, source: str | None = None) -> list[SearchResult]:
        if not query.strip() or limit <= 0:
            return []

        params: dict[str, Any] = {"query_texts": [query], "n_results": limit}
        if source:
            params["where"] = {"source": source}

        results = self._collection.query(**params)

        formatted: list[SearchResult] = []
        if not results.get("documents") or not results["documents"][0]:
            return formatted

        for i, text in enumerate(results["documents"][0]):
            metadata = dict(results["metadatas"][0][i]) if results.get("metadatas") else {}
            distance = results["distances"][0][i] if results.get("distances") else 0.0
            formatted.append(
                SearchResult(
                    id=results["ids"][0][i],
                    title=str(metadata.pop("title", "")),
                    source=str(metadata.pop("source", "")),
                    content=text or "",
                    score=1 - float(distance),
                    metadata=metadata,
                )
            )
        logger.debug("Knowledge search '%s' returned %d result(s)", query[:50], len(formatted))
        return formatted


__all__ = ["ChromaKnowledgeStore", "KnowledgeStore"]
