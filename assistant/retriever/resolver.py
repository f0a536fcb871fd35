"""
Candidate Resolver

Turns attachment references into the bounded list of files that will be read:
1. Authorize every reference against the configured Box root
2. Keep explicit file references as-is (trusted intent)
3. Expand folder references by breadth-first traversal into a candidate pool
4. Rank the pool and fill the remaining file quota
"""

import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Set

from ..common.box_client import BoxClient, FolderItem
from ..common.cache import CachePort, MemoryCache, PREFIX_BOX_CHECK, PREFIX_BOX_LIST, generate_key, wrap
from ..common.config import AssistantConfig, ClientLimits
from ..common.schemas import AttachmentRef
from .relevance import CandidateFile, select_top_relevant_files

logger = logging.getLogger("assistant.retriever.resolver")


@dataclass
class ResolvedFile:
    """A file selected for content extraction"""
    id: str
    name: str
    size: Optional[int] = None
    kind: str = "file"


class CandidateResolver:
    """
    Resolves attachment references into a capped, ranked file list.

    Invariants per resolution pass:
    - no folder id is listed twice within one traversal
    - no file id enters the candidate pool twice
    - at most ``max_scan`` candidates are collected from folders
    - at most ``max_files`` files are returned
    """

    def __init__(
        self,
        box_client: BoxClient,
        config: AssistantConfig,
        cache: Optional[CachePort] = None,
    ):
        """
        Initialize resolver.

        Args:
            box_client: Repository gateway
            config: Service configuration (limits and cache TTLs)
            cache: Cache for folder listings and authorization checks
        """
        self._box = box_client
        self._config = config
        self._cache = cache if cache is not None else MemoryCache()

    async def is_authorized(self, entity_id: str, kind: str) -> bool:
        """Subtree check, cached for a short TTL."""
        key = generate_key(PREFIX_BOX_CHECK, {"id": entity_id, "type": kind})
        return bool(await wrap(
            self._cache,
            key,
            lambda: self._box.is_under_root(entity_id, kind),
            self._config.cache.auth_check_ttl,
        ))

    async def _list_folder(self, folder_id: str) -> List[FolderItem]:
        key = generate_key(PREFIX_BOX_LIST, {"folderId": folder_id})

        async def fetch():
            items = await self._box.list_folder_items(folder_id)
            return [item.to_dict() for item in items]

        # Empty listings are not cached so a provider hiccup is not pinned
        raw = await wrap(
            self._cache,
            key,
            fetch,
            self._config.cache.listing_ttl,
            should_cache=bool,
        )
        return [FolderItem.from_dict(d) for d in raw or []]

    async def collect_folder_candidates(
        self,
        folder_id: str,
        max_depth: int,
        max_items: int,
        visited: Optional[Set[str]] = None,
        exclude: Iterable[str] = (),
    ) -> List[CandidateFile]:
        """
        Breadth-first collection of files under a folder.

        Args:
            folder_id: Folder to start from (depth 0)
            max_depth: Sub-folders are enqueued only while depth < max_depth
            max_items: Stop once this many candidates are collected
            visited: Folder ids already listed in this traversal (updated in place)
            exclude: File ids that must not be collected again

        Returns:
            Candidates in traversal order
        """
        visited = visited if visited is not None else set()
        excluded = set(exclude)
        out: List[CandidateFile] = []
        queue = deque([(folder_id, 0)])

        while queue and len(out) < max_items:
            current_id, depth = queue.popleft()
            if current_id in visited:
                continue
            visited.add(current_id)

            for item in await self._list_folder(current_id):
                if len(out) >= max_items:
                    break
                if item.is_file:
                    if item.id in excluded:
                        continue
                    excluded.add(item.id)
                    out.append(CandidateFile(
                        id=item.id,
                        name=item.name,
                        size=item.size,
                        modified_at=item.modified_at,
                    ))
                elif item.is_folder and depth < max_depth and item.id not in visited:
                    queue.append((item.id, depth + 1))

        return out

    async def resolve_attachments(
        self,
        query: str,
        references: List[AttachmentRef],
        client_kind: str,
        now: Optional[datetime] = None,
    ) -> List[ResolvedFile]:
        """
        Resolve references to the files that will be read.

        Args:
            query: User query used for relevance ranking
            references: Attachment references (files and folders)
            client_kind: "widget" or "assistant"
            now: Reference time for ranking recency

        Returns:
            Explicit files first (attachment order), then ranked folder files
        """
        limits: ClientLimits = self._config.limits_for(client_kind)
        files: List[ResolvedFile] = []
        selected: Set[str] = set()
        candidates: List[CandidateFile] = []
        folders_listed: Set[str] = set()

        for ref in references or []:
            if not ref.id:
                continue
            kind = ref.kind
            if not await self.is_authorized(ref.id, kind):
                logger.info("Dropping %s %s: outside configured root", kind, ref.id)
                continue

            if kind == "file":
                if len(files) >= limits.max_files or ref.id in selected:
                    continue
                info = await self._box.get_file_info(ref.id)
                if info:
                    files.append(ResolvedFile(id=info.id, name=info.name, size=info.size))
                    selected.add(info.id)
                continue

            remaining_scan = limits.max_scan - len(candidates)
            if remaining_scan <= 0:
                continue
            pool_ids = selected | {c.id for c in candidates}
            # each folder reference is traversed from its own root
            visited: Set[str] = set()
            found = await self.collect_folder_candidates(
                ref.id,
                limits.max_depth,
                remaining_scan,
                visited=visited,
                exclude=pool_ids,
            )
            candidates.extend(found)
            folders_listed |= visited

        remaining_out = limits.max_files - len(files)
        if remaining_out > 0 and candidates:
            residual = [c for c in candidates if c.id not in selected]
            for ranked in select_top_relevant_files(query, residual, remaining_out, now=now):
                if ranked.id in selected:
                    continue
                files.append(ResolvedFile(id=ranked.id, name=ranked.name, size=ranked.size))
                selected.add(ranked.id)

        logger.info(
            "Resolved %d file(s) from %d reference(s) (candidates=%d, folders=%d, client=%s)",
            len(files), len(references or []), len(candidates), len(folders_listed), client_kind,
        )
        return files
