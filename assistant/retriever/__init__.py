"""
Retriever - Attachment Context Retrieval

Key Components:
- relevance: ranks candidate files by file-name keywords and recency
- CandidateResolver: authorizes references and expands folders
- ExtractionEngine: bounded reads, format decoding, two-tier caching
- RetrievalOrchestrator: similarity search first, full extraction as fallback

Pipeline:
1. Resolve references to at most max_files files
2. Ask the chunk search service for the top-k chunks
3. Otherwise extract full text up to the character budget
4. Return combined text plus citations
"""

from .relevance import CandidateFile, select_top_relevant_files
from .resolver import CandidateResolver, ResolvedFile
from .decoders import DecoderRegistry, default_registry
from .extraction import ExtractionEngine, ExtractedDocument
from .chunk_search import Chunk, ChunkSearcher, ChunkSearchResult
from .orchestrator import KnowledgeBase, RetrievalOrchestrator

__all__ = [
    "CandidateFile",
    "select_top_relevant_files",
    "CandidateResolver",
    "ResolvedFile",
    "DecoderRegistry",
    "default_registry",
    "ExtractionEngine",
    "ExtractedDocument",
    "Chunk",
    "ChunkSearcher",
    "ChunkSearchResult",
    "KnowledgeBase",
    "RetrievalOrchestrator",
]
