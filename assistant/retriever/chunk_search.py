"""
Chunk Search Port

Interface to the external similarity-search service that holds chunked,
embedded copies of Box documents. Indexing is owned by that service; the
context pipeline only queries it.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List


@dataclass
class Chunk:
    """A scored text chunk from one document"""
    doc_name: str
    index: int
    text: str
    score: float = 0.0


@dataclass
class ChunkSearchResult:
    chunks: List[Chunk] = field(default_factory=list)
    citations: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.chunks


class ChunkSearcher(ABC):
    """
    Similarity search over indexed chunks.

    Implementations may raise on transport failure; the orchestrator treats
    any exception or empty result as "unavailable" and falls back to full
    extraction.
    """

    @abstractmethod
    async def search_top_chunks(self, query: str, file_ids: List[str], top_k: int) -> ChunkSearchResult:
        """
        Return the ``top_k`` chunks most similar to ``query``, restricted
        to documents indexed from ``file_ids``.
        """
        pass
