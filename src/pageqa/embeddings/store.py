"""Chroma-backed persistence for page embeddings."""

from __future__ import annotations

from pathlib import Path
from typing import MutableMapping, Sequence
from uuid import NAMESPACE_URL, uuid5

import chromadb
from chromadb.api import ClientAPI

from pageqa.config import Settings
from pageqa.models import Chunk, Document, EmbeddingResponse, Segmentation


class ChromaEmbeddingStore:
    """Opaque ``embeddings`` collection shared with consumers outside the pipeline."""

    def __init__(
        self,
        collection_name: str = "embeddings",
        *,
        client: ClientAPI | None = None,
        persist_directory: str | Path | None = None,
    ) -> None:
        if client is not None:
            self._client = client
        elif persist_directory is not None:
            self._client = chromadb.PersistentClient(path=str(persist_directory))
        else:
            self._client = chromadb.EphemeralClient()
        self._collection = self._client.get_or_create_collection(
            name=collection_name,
            metadata={"hnsw:space": "cosine"},
        )

    @classmethod
    def connect(cls, settings: Settings) -> "ChromaEmbeddingStore":
        client = None
        if settings.chroma_host:
            client = chromadb.HttpClient(
                host=settings.chroma_host,
                port=settings.chroma_port or 8000,
                ssl=settings.chroma_ssl,
            )
        return cls(
            settings.chroma_collection,
            client=client,
            persist_directory=None if client else settings.chroma_persist_dir,
        )

    @property
    def name(self) -> str:
        return self._collection.name

    def add(self, document: Document, segmentation: Segmentation, embeddings: EmbeddingResponse) -> Sequence[str]:
        """Upsert one record per chunk; vectors are matched to chunks by position."""

        chunks = segmentation.chunks
        if len(chunks) != len(embeddings.vectors):
            raise ValueError(
                f"Cannot store {len(embeddings.vectors)} vectors for {len(chunks)} chunks",
            )
        if not chunks:
            return []
        ids = [self._chunk_id(document.source_url, chunk) for chunk in chunks]
        self._collection.upsert(
            ids=ids,
            documents=[chunk.text for chunk in chunks],
            embeddings=[list(vector.values) for vector in embeddings.vectors],
            metadatas=[self._serialize_chunk(document, chunk, embeddings.model) for chunk in chunks],
        )
        return ids

    def count(self) -> int:
        return int(self._collection.count())

    def reset(self) -> None:
        ids = self._collection.get(include=[])["ids"]
        if ids:
            self._collection.delete(ids=ids)

    @staticmethod
    def _chunk_id(source_url: str, chunk: Chunk) -> str:
        return f"{uuid5(NAMESPACE_URL, source_url).hex}-{chunk.order}"

    @staticmethod
    def _serialize_chunk(document: Document, chunk: Chunk, model: str) -> MutableMapping[str, object]:
        metadata: MutableMapping[str, object] = {
            "source_url": document.source_url,
            "content_type": document.content_type.value,
            "order": chunk.order,
            "model": model,
        }
        if chunk.token_count is not None:
            metadata["token_count"] = chunk.token_count
        return metadata
