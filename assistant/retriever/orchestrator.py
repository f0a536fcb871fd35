"""
Retrieval Orchestrator

Top-level entry point for the assistant request handler. Builds the
knowledge base handed to the prompt builder from attachment references.

Strategies are tried in order until one yields content:
1. similarity: top-k chunks from the external chunk search service
2. extraction: full-text extraction of every resolved file

An empty knowledge base is a valid outcome; nothing here raises to the caller.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, List, Optional, Tuple

from ..common.config import AssistantConfig, ClientLimits
from ..common.deadline import Deadline
from ..common.schemas import AttachmentRef
from .chunk_search import ChunkSearcher
from .extraction import ExtractionEngine
from .resolver import CandidateResolver, ResolvedFile

logger = logging.getLogger("assistant.retriever.orchestrator")

SOURCE_SIMILARITY = "similarity"
SOURCE_EXTRACTION = "extraction"
SOURCE_EMPTY = "empty"
BLOCK_SEPARATOR = "\n\n"


@dataclass
class KnowledgeBase:
    """Combined source text plus the names it was built from"""
    combined_text: str = ""
    citations: List[str] = field(default_factory=list)
    partial: bool = False  # deadline cut the work short
    source: str = SOURCE_EMPTY

    @property
    def is_empty(self) -> bool:
        return not self.combined_text.strip()


def format_source_block(name: str, text: str) -> str:
    return f"### Source: {name}\n{text}"


Strategy = Callable[[str, List[ResolvedFile], ClientLimits, Deadline], Awaitable[KnowledgeBase]]


class RetrievalOrchestrator:
    """
    Turns a query plus attachment references into a knowledge base.

    Folder references are expanded by the resolver for every strategy, so the
    similarity path and the extraction path see the same file set.
    """

    def __init__(
        self,
        resolver: CandidateResolver,
        engine: ExtractionEngine,
        config: AssistantConfig,
        chunk_searcher: Optional[ChunkSearcher] = None,
    ):
        """
        Initialize orchestrator.

        Args:
            resolver: Candidate resolver (authorization + folder expansion)
            engine: Extraction engine for the full-text path
            config: Service configuration (limits, request timeout)
            chunk_searcher: Similarity search service; None disables that path
        """
        self._resolver = resolver
        self._engine = engine
        self._config = config
        self._searcher = chunk_searcher

    @property
    def strategies(self) -> List[Tuple[str, Strategy]]:
        """Fallback order"""
        return [
            (SOURCE_SIMILARITY, self._from_similarity),
            (SOURCE_EXTRACTION, self._from_extraction),
        ]

    async def extract_text_for_client(
        self,
        query: str,
        references: List[AttachmentRef],
        client_kind: str,
        resolved: Optional[List[ResolvedFile]] = None,
        now: Optional[datetime] = None,
    ) -> KnowledgeBase:
        """
        Build the knowledge base for one request.

        Args:
            query: User query
            references: Attachment references (ignored when ``resolved`` is given)
            client_kind: "widget" or "assistant"
            resolved: Files already resolved by the caller
            now: Reference time for relevance ranking

        Returns:
            KnowledgeBase (possibly empty, possibly partial)
        """
        limits = self._config.limits_for(client_kind)
        deadline = Deadline(self._config.request_timeout_seconds)

        if resolved is None:
            try:
                resolved = await asyncio.wait_for(
                    self._resolver.resolve_attachments(query, references, client_kind, now=now),
                    timeout=deadline.remaining(),
                )
            except asyncio.TimeoutError:
                logger.warning("Attachment resolution exceeded the request deadline")
                return KnowledgeBase(partial=True)
            except Exception as e:
                logger.error("Attachment resolution failed: %s", e, exc_info=True)
                return KnowledgeBase()

        files = list(resolved or [])[:limits.max_files]
        if not files:
            return KnowledgeBase()

        partial = False
        for name, strategy in self.strategies:
            kb = await strategy(query, files, limits, deadline)
            partial = partial or kb.partial
            if not kb.is_empty:
                kb.partial = partial
                logger.info(
                    "Knowledge base from %s: %d chars, %d citation(s)%s",
                    name, len(kb.combined_text), len(kb.citations), " (partial)" if partial else "",
                )
                return kb
            if deadline.expired:
                partial = True
                break

        logger.info("Knowledge base empty for %d resolved file(s)", len(files))
        return KnowledgeBase(partial=partial)

    async def _from_similarity(
        self,
        query: str,
        files: List[ResolvedFile],
        limits: ClientLimits,
        deadline: Deadline,
    ) -> KnowledgeBase:
        if self._searcher is None:
            return KnowledgeBase()

        file_ids = [f.id for f in files]
        logger.info("Similarity search start: files=%d top_k=%d", len(file_ids), limits.top_k)
        try:
            result = await asyncio.wait_for(
                self._searcher.search_top_chunks(query, file_ids, limits.top_k),
                timeout=deadline.remaining(),
            )
        except asyncio.TimeoutError:
            logger.warning("Similarity search exceeded the request deadline")
            return KnowledgeBase(partial=True)
        except Exception as e:
            logger.warning("Similarity search failed, falling back to full extraction: %s", e)
            return KnowledgeBase()

        if result is None or result.is_empty:
            return KnowledgeBase()

        parts = [format_source_block(c.doc_name, c.text) for c in result.chunks]
        citations = result.citations or list(dict.fromkeys(c.doc_name for c in result.chunks))
        return KnowledgeBase(
            combined_text=BLOCK_SEPARATOR.join(parts),
            citations=list(citations),
            source=SOURCE_SIMILARITY,
        )

    async def _from_extraction(
        self,
        query: str,
        files: List[ResolvedFile],
        limits: ClientLimits,
        deadline: Deadline,
    ) -> KnowledgeBase:
        parts: List[str] = []
        citations: List[str] = []
        total = 0
        partial = False

        for f in files[:limits.max_files]:
            separator = len(BLOCK_SEPARATOR) if parts else 0
            remaining = limits.max_total_chars - total - separator
            if remaining <= 0:
                break
            if deadline.expired:
                partial = True
                break
            try:
                document = await asyncio.wait_for(
                    self._engine.extract_text_fresh(f.id, limits.per_doc_chars, deadline),
                    timeout=deadline.remaining(),
                )
            except asyncio.TimeoutError:
                logger.warning("Extraction of %s exceeded the request deadline", f.name)
                partial = True
                break
            if document is None or not document.text.strip():
                continue

            block = format_source_block(document.name, document.text)[:remaining]
            parts.append(block)
            citations.append(document.name)
            total += separator + len(block)

        return KnowledgeBase(
            combined_text=BLOCK_SEPARATOR.join(parts),
            citations=citations,
            partial=partial or deadline.expired,
            source=SOURCE_EXTRACTION if parts else SOURCE_EMPTY,
        )
