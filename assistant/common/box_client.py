"""
Box Client

Thin async client to the Box document repository.
Only the read operations needed by the context pipeline are exposed:
folder listing, file/folder metadata, subtree membership and streamed downloads.

Every provider failure is logged and returned as "no data" ([] or None),
so callers never see provider exceptions.
"""

import logging
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger("assistant.common.box_client")

FILE_FIELDS = "id,name,path_collection,size,modified_at,sha1,etag"
FOLDER_FIELDS = "id,name,path_collection"
LIST_FIELDS = "id,name,type,size,modified_at"


@dataclass
class FolderItem:
    """A direct child of a folder"""
    id: str
    name: str
    type: str  # "file", "folder" or "web_link"
    size: Optional[int] = None
    modified_at: Optional[str] = None

    @property
    def is_file(self) -> bool:
        return self.type == "file"

    @property
    def is_folder(self) -> bool:
        return self.type == "folder"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FolderItem":
        return cls(
            id=str(data.get("id", "")),
            name=data.get("name") or "",
            type=data.get("type") or "",
            size=data.get("size"),
            modified_at=data.get("modified_at"),
        )


@dataclass
class FolderInfo:
    """Folder metadata with ancestry"""
    id: str
    name: str
    path_ids: List[str] = field(default_factory=list)


@dataclass
class FileInfo:
    """File metadata with ancestry and version signals"""
    id: str
    name: str
    path_ids: List[str] = field(default_factory=list)
    size: Optional[int] = None
    modified_at: Optional[str] = None
    sha1: Optional[str] = None
    etag: Optional[str] = None


def _path_ids(raw: Dict[str, Any]) -> List[str]:
    entries = (raw.get("path_collection") or {}).get("entries") or []
    return [str(e.get("id")) for e in entries if e.get("id") is not None]


class BoxClient:
    """
    Async client for the Box content API.

    All reads are meant to be scoped to entities under ``root_folder_id``;
    ``is_under_root`` is the authorization gate callers must use before
    expanding or reading any reference.
    """

    def __init__(
        self,
        access_token: str = "",
        root_folder_id: str = "",
        api_base_url: str = "https://api.box.com/2.0",
        page_size: int = 1000,
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize Box client.

        Args:
            access_token: Bearer token; without it every call returns no data
            root_folder_id: Folder whose subtree bounds all reads
            api_base_url: Box API base URL
            page_size: Maximum entries returned by one folder listing
            timeout: HTTP timeout in seconds
            http_client: Pre-built httpx client (tests inject a MockTransport)
        """
        self._root_folder_id = str(root_folder_id or "")
        self._page_size = page_size
        self._client: Optional[httpx.AsyncClient] = None

        if http_client is not None:
            self._client = http_client
        elif access_token:
            self._client = httpx.AsyncClient(
                base_url=api_base_url.rstrip("/"),
                headers={"Authorization": f"Bearer {access_token}"},
                timeout=timeout,
            )
        else:
            logger.warning("Box client not initialized - Box features will be disabled")

    @property
    def is_configured(self) -> bool:
        return self._client is not None

    @property
    def root_folder_id(self) -> str:
        return self._root_folder_id

    async def _get_json(self, path: str, params: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        response = await self._client.get(path, params=params)
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return response.json()

    async def list_folder_items(self, folder_id: str) -> List[FolderItem]:
        """List direct children of a folder (single page)."""
        if not self._client:
            logger.warning("list_folder_items called without initialized client")
            return []
        try:
            data = await self._get_json(
                f"/folders/{folder_id}/items",
                {"limit": self._page_size, "fields": LIST_FIELDS},
            )
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Failed to list folder items (folder=%s): %s", folder_id, e)
            return []
        if not data:
            return []
        return [FolderItem.from_dict(e) for e in data.get("entries") or []]

    async def get_folder_info(self, folder_id: str) -> Optional[FolderInfo]:
        """Get folder metadata with path ancestry."""
        if not self._client:
            return None
        try:
            data = await self._get_json(f"/folders/{folder_id}", {"fields": FOLDER_FIELDS})
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Failed to get folder info (folder=%s): %s", folder_id, e)
            return None
        if not data:
            return None
        return FolderInfo(
            id=str(data.get("id", folder_id)),
            name=data.get("name") or "",
            path_ids=_path_ids(data),
        )

    async def get_file_info(self, file_id: str) -> Optional[FileInfo]:
        """Get file metadata with path ancestry and sha1/etag for cache keys."""
        if not self._client:
            return None
        try:
            data = await self._get_json(f"/files/{file_id}", {"fields": FILE_FIELDS})
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Failed to get file info (file=%s): %s", file_id, e)
            return None
        if not data:
            return None
        return FileInfo(
            id=str(data.get("id", file_id)),
            name=data.get("name") or "",
            path_ids=_path_ids(data),
            size=data.get("size"),
            modified_at=data.get("modified_at"),
            sha1=data.get("sha1") or None,
            etag=data.get("etag") or None,
        )

    async def open_read_stream(self, file_id: str) -> Optional[httpx.Response]:
        """
        Open a streamed download of the file content.

        The caller owns the returned response and must ``aclose()`` it;
        bytes are read with ``aiter_bytes()``.
        """
        if not self._client:
            return None
        request = self._client.build_request("GET", f"/files/{file_id}/content")
        try:
            response = await self._client.send(request, stream=True, follow_redirects=True)
        except httpx.HTTPError as e:
            logger.error("Failed to open read stream (file=%s): %s", file_id, e)
            return None
        if response.is_error:
            logger.error("Failed to open read stream (file=%s): HTTP %s", file_id, response.status_code)
            await response.aclose()
            return None
        return response

    async def is_under_root(self, entity_id: str, kind: str) -> bool:
        """
        Check that a file/folder lies within the configured root subtree.

        Args:
            entity_id: Box id
            kind: "file" or "folder"
        """
        root_id = self._root_folder_id
        if not root_id or not self._client:
            return False
        if kind == "file":
            info = await self.get_file_info(entity_id)
        else:
            info = await self.get_folder_info(entity_id)
        if not info:
            return False
        if str(info.id) == root_id:
            return True
        return root_id in info.path_ids

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
