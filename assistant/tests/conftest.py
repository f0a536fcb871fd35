"""Shared fakes for pipeline tests."""

from typing import Dict, List, Optional

import pytest

from assistant.common.box_client import FileInfo, FolderInfo, FolderItem
from assistant.common.config import AssistantConfig


class FakeStream:
    """Async byte stream with the aiter_bytes/aclose surface of httpx.Response."""

    def __init__(self, data: bytes, chunk_size: int = 64 * 1024):
        self._data = data
        self._chunk_size = chunk_size
        self.bytes_yielded = 0
        self.closed = False

    async def aiter_bytes(self):
        for start in range(0, len(self._data), self._chunk_size):
            if self.closed:
                return
            chunk = self._data[start:start + self._chunk_size]
            self.bytes_yielded += len(chunk)
            yield chunk

    async def aclose(self):
        self.closed = True


class FakeBox:
    """
    In-memory stand-in for BoxClient.

    Folders and files are registered with a parent; ancestry (path_ids) is
    derived from the parent chain, like Box's path_collection.
    """

    def __init__(self, root_id: str = "ROOT"):
        self.root_folder_id = root_id
        self.is_configured = True
        self.children: Dict[str, List[FolderItem]] = {root_id: []}
        self.folder_paths: Dict[str, List[str]] = {root_id: []}
        self.files: Dict[str, FileInfo] = {}
        self.contents: Dict[str, bytes] = {}
        self.list_calls: List[str] = []
        self.streams: List[FakeStream] = []

    def add_folder(self, folder_id: str, parent: Optional[str] = None, name: str = "") -> str:
        parent = parent or self.root_folder_id
        self.children.setdefault(folder_id, [])
        self.folder_paths[folder_id] = self.folder_paths.get(parent, []) + [parent]
        self.children.setdefault(parent, []).append(FolderItem(id=folder_id, name=name or folder_id, type="folder"))
        return folder_id

    def add_file(
        self,
        file_id: str,
        name: str,
        parent: Optional[str] = None,
        content: bytes = b"",
        sha1: Optional[str] = None,
        etag: Optional[str] = None,
        size: Optional[int] = None,
        modified_at: Optional[str] = None,
    ) -> FileInfo:
        parent = parent or self.root_folder_id
        size = len(content) if size is None else size
        info = FileInfo(
            id=file_id,
            name=name,
            path_ids=self.folder_paths.get(parent, []) + [parent],
            size=size,
            modified_at=modified_at,
            sha1=sha1,
            etag=etag,
        )
        self.files[file_id] = info
        self.contents[file_id] = content
        self.children.setdefault(parent, []).append(
            FolderItem(id=file_id, name=name, type="file", size=size, modified_at=modified_at)
        )
        return info

    async def list_folder_items(self, folder_id: str) -> List[FolderItem]:
        self.list_calls.append(folder_id)
        return list(self.children.get(folder_id, []))

    async def get_file_info(self, file_id: str) -> Optional[FileInfo]:
        return self.files.get(file_id)

    async def get_folder_info(self, folder_id: str) -> Optional[FolderInfo]:
        if folder_id not in self.folder_paths:
            return None
        return FolderInfo(id=folder_id, name=folder_id, path_ids=list(self.folder_paths[folder_id]))

    async def is_under_root(self, entity_id: str, kind: str) -> bool:
        info = await (self.get_file_info(entity_id) if kind == "file" else self.get_folder_info(entity_id))
        if not info:
            return False
        return info.id == self.root_folder_id or self.root_folder_id in info.path_ids

    async def open_read_stream(self, file_id: str) -> Optional[FakeStream]:
        if file_id not in self.contents:
            return None
        stream = FakeStream(self.contents[file_id])
        self.streams.append(stream)
        return stream

    async def aclose(self):
        pass


@pytest.fixture
def fake_box():
    return FakeBox()


@pytest.fixture
def config():
    return AssistantConfig()


@pytest.fixture
def make_stream():
    return FakeStream
