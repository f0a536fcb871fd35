"""
Pipeline wiring

Builds the gateway, cache tiers, resolver, extraction engine and
orchestrator from an AssistantConfig.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .common.box_client import BoxClient
from .common.cache import MemoryCache, RedisCache, TieredCache
from .common.config import AssistantConfig
from .retriever.chunk_search import ChunkSearcher
from .retriever.decoders import default_registry
from .retriever.extraction import ExtractionEngine
from .retriever.orchestrator import RetrievalOrchestrator
from .retriever.resolver import CandidateResolver

logger = logging.getLogger("assistant.pipeline")


@dataclass
class Pipeline:
    box_client: BoxClient
    local_cache: MemoryCache
    shared_cache: Optional[RedisCache]
    resolver: CandidateResolver
    engine: ExtractionEngine
    orchestrator: RetrievalOrchestrator

    async def aclose(self) -> None:
        await self.box_client.aclose()
        if self.shared_cache is not None:
            await self.shared_cache.aclose()


def build_pipeline(
    config: AssistantConfig,
    chunk_searcher: Optional[ChunkSearcher] = None,
    box_client: Optional[BoxClient] = None,
) -> Pipeline:
    """Wire the context pipeline; the shared tier is used only when redis_url is set."""
    if box_client is None:
        box_client = BoxClient(
            access_token=config.box.access_token,
            root_folder_id=config.box.root_folder_id,
            api_base_url=config.box.api_base_url,
            page_size=config.box.page_size,
            timeout=config.box.timeout_seconds,
        )

    local_cache = MemoryCache(max_entries=config.cache.local_max_entries)
    shared_cache = None
    tiers = []
    if config.cache.redis_url:
        shared_cache = RedisCache.from_url(config.cache.redis_url, namespace=config.cache.namespace)
        tiers.append((shared_cache, config.cache.shared_text_ttl))
    else:
        logger.info("REDIS_URL not set, shared extraction cache disabled")
    tiers.append((local_cache, config.cache.local_text_ttl))

    decoders = default_registry(
        ocr_enabled=config.extraction.ocr_enabled,
        ocr_dpi=config.extraction.ocr_dpi,
        ocr_max_pages=config.extraction.ocr_max_pages,
        ocr_language=config.extraction.ocr_language,
    )
    resolver = CandidateResolver(box_client, config, cache=local_cache)
    engine = ExtractionEngine(
        box_client,
        decoders,
        TieredCache(tiers),
        max_file_bytes=config.extraction.max_file_bytes,
        max_doc_chars=config.max_doc_chars,
    )
    orchestrator = RetrievalOrchestrator(resolver, engine, config, chunk_searcher=chunk_searcher)

    return Pipeline(
        box_client=box_client,
        local_cache=local_cache,
        shared_cache=shared_cache,
        resolver=resolver,
        engine=engine,
        orchestrator=orchestrator,
    )
