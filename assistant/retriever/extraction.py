"""
Extraction Engine

Fetches a bounded byte stream for a Box file, decodes it to plain text and
caches the result per file version across two tiers (shared, then local).

Cache keys are ``{fileId}:{versionToken}`` where the version token is the
strongest identity signal Box reports: sha1, else etag, else size+mtime.
Two entries with the same key therefore come from identical content, and a
changed file simply produces a new key.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Optional

from ..common.box_client import BoxClient, FileInfo
from ..common.cache import TieredCache
from ..common.deadline import Deadline
from .decoders import DecoderRegistry

logger = logging.getLogger("assistant.retriever.extraction")

DEFAULT_MAX_FILE_BYTES = 5 * 1024 * 1024
DEFAULT_MAX_DOC_CHARS = 12_000


@dataclass
class ExtractedDocument:
    name: str
    text: str


def make_version_key(info: Optional[FileInfo]) -> Optional[str]:
    """Return ``{id}:{version}`` or None when no identity signal exists."""
    if not info or not info.id:
        return None
    if info.sha1:
        version = str(info.sha1)
    elif info.etag:
        version = str(info.etag)
    elif info.size is not None and info.modified_at:
        version = f"{info.size}:{info.modified_at}"
    else:
        return None
    return f"{info.id}:{version}"


async def read_capped(stream, max_bytes: int, deadline: Optional[Deadline] = None) -> bytes:
    """
    Read at most ``max_bytes`` from an async byte stream.

    The stream is closed as soon as the cap is reached; oversized content
    is truncated, not rejected. The deadline is checked between chunks.
    """
    chunks = []
    total = 0
    try:
        async for chunk in stream.aiter_bytes():
            if deadline is not None:
                deadline.check()
            remaining = max_bytes - total
            if len(chunk) >= remaining:
                chunks.append(chunk[:remaining])
                total += remaining
                break
            chunks.append(chunk)
            total += len(chunk)
    finally:
        await stream.aclose()
    return b"".join(chunks)


class ExtractionEngine:
    """
    Converts Box files to plain text with bounded reads and two-tier caching.

    Failures are per file: any error is logged and the file yields None,
    never an exception to the caller (cancellation excepted).
    """

    def __init__(
        self,
        box_client: BoxClient,
        decoders: DecoderRegistry,
        cache: TieredCache,
        max_file_bytes: int = DEFAULT_MAX_FILE_BYTES,
        max_doc_chars: int = DEFAULT_MAX_DOC_CHARS,
    ):
        """
        Initialize extraction engine.

        Args:
            box_client: Repository gateway
            decoders: Extension -> decoder registry
            cache: Shared + local cache chain for extracted text
            max_file_bytes: Read cap per file
            max_doc_chars: Longest text stored in cache (largest per-doc budget)
        """
        self._box = box_client
        self._decoders = decoders
        self._cache = cache
        self._max_file_bytes = max_file_bytes
        self._max_doc_chars = max_doc_chars

    async def extract_text(
        self,
        file_id: str,
        per_doc_chars: Optional[int] = None,
        deadline: Optional[Deadline] = None,
    ) -> Optional[ExtractedDocument]:
        """Extract text, serving from cache when the file version is known."""
        return await self._extract(file_id, per_doc_chars, deadline, use_cache=True)

    async def extract_text_fresh(
        self,
        file_id: str,
        per_doc_chars: Optional[int] = None,
        deadline: Optional[Deadline] = None,
    ) -> Optional[ExtractedDocument]:
        """Extract text without reading caches (the result is still cached)."""
        return await self._extract(file_id, per_doc_chars, deadline, use_cache=False)

    def _clip(self, document: ExtractedDocument, per_doc_chars: Optional[int]) -> ExtractedDocument:
        limit = min(per_doc_chars or self._max_doc_chars, self._max_doc_chars)
        return ExtractedDocument(name=document.name, text=document.text[:limit])

    async def _extract(
        self,
        file_id: str,
        per_doc_chars: Optional[int],
        deadline: Optional[Deadline],
        use_cache: bool,
    ) -> Optional[ExtractedDocument]:
        try:
            info = await self._box.get_file_info(file_id)
            if not info:
                return None

            key = make_version_key(info)
            if key and use_cache:
                hit = await self._cache.get(key)
                if hit:
                    logger.debug("Extraction cache hit: %s", key)
                    return self._clip(ExtractedDocument(name=hit["name"], text=hit["text"]), per_doc_chars)

            stream = await self._box.open_read_stream(file_id)
            if stream is None:
                return None
            data = await read_capped(stream, self._max_file_bytes, deadline)
            if len(data) >= self._max_file_bytes:
                logger.info("Truncated %s at %d bytes", info.name, self._max_file_bytes)

            raw = await asyncio.to_thread(self._decoders.decode, info.name, data)
            document = ExtractedDocument(name=info.name, text=(raw or "")[:self._max_doc_chars])

            if key:
                await self._cache.set(key, {"name": document.name, "text": document.text, "timestamp": time.time()})
            logger.info("Extracted %d chars from %s", len(document.text), info.name)
            return self._clip(document, per_doc_chars)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("Extraction failed for file %s: %s", file_id, e)
            return None
