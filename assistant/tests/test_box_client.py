"""Tests for the Box client (HTTP mocked with httpx.MockTransport)."""

import logging

import httpx
import pytest

from assistant.common.box_client import BoxClient


def _path(*ids):
    return {"path_collection": {"entries": [{"id": i, "type": "folder"} for i in ids]}}


FILES = {
    "f1": {"id": "f1", "name": "BS_2024.pdf", "size": 12, "sha1": "abc", "etag": "1", **_path("0", "ROOT")},
    "f2": {"id": "f2", "name": "secret.pdf", "size": 3, **_path("0", "OTHER")},
}
FOLDERS = {
    "ROOT": {"id": "ROOT", "name": "Clients", **_path("0")},
    "sub": {"id": "sub", "name": "Acme", **_path("0", "ROOT")},
    "OTHER": {"id": "OTHER", "name": "HR", **_path("0")},
}


def handler(request: httpx.Request) -> httpx.Response:
    parts = request.url.path.strip("/").split("/")
    if parts[0] == "folders" and len(parts) == 3 and parts[2] == "items":
        if parts[1] == "broken":
            return httpx.Response(500, json={"type": "error"})
        return httpx.Response(200, json={"entries": [
            {"id": "f1", "name": "BS_2024.pdf", "type": "file", "size": 12, "modified_at": "2024-06-01T00:00:00Z"},
            {"id": "sub", "name": "Acme", "type": "folder"},
        ]})
    if parts[0] == "folders" and parts[1] in FOLDERS:
        return httpx.Response(200, json=FOLDERS[parts[1]])
    if parts[0] == "files" and len(parts) == 3 and parts[2] == "content":
        if parts[1] == "f1":
            return httpx.Response(200, content=b"file content")
        return httpx.Response(404)
    if parts[0] == "files" and parts[1] in FILES:
        return httpx.Response(200, json=FILES[parts[1]])
    return httpx.Response(404, json={"type": "error", "status": 404})


@pytest.fixture
def box():
    http_client = httpx.AsyncClient(
        base_url="https://box.test",
        transport=httpx.MockTransport(handler),
    )
    return BoxClient(root_folder_id="ROOT", http_client=http_client)


class TestBoxClient:
    @pytest.mark.asyncio
    async def test_list_folder_items(self, box):
        items = await box.list_folder_items("ROOT")
        assert [i.id for i in items] == ["f1", "sub"]
        assert items[0].is_file and items[0].size == 12
        assert items[1].is_folder

    @pytest.mark.asyncio
    async def test_list_error_returns_empty(self, box, caplog):
        with caplog.at_level(logging.ERROR, logger="assistant.common.box_client"):
            assert await box.list_folder_items("broken") == []
        assert "Failed to list folder items" in caplog.text

    @pytest.mark.asyncio
    async def test_file_info(self, box):
        info = await box.get_file_info("f1")
        assert info.name == "BS_2024.pdf"
        assert info.path_ids == ["0", "ROOT"]
        assert info.sha1 == "abc"
        assert await box.get_file_info("missing") is None

    @pytest.mark.asyncio
    async def test_is_under_root(self, box):
        assert await box.is_under_root("f1", "file") is True
        assert await box.is_under_root("sub", "folder") is True
        assert await box.is_under_root("ROOT", "folder") is True
        assert await box.is_under_root("f2", "file") is False
        assert await box.is_under_root("OTHER", "folder") is False
        assert await box.is_under_root("missing", "file") is False

    @pytest.mark.asyncio
    async def test_no_root_denies_everything(self):
        http_client = httpx.AsyncClient(base_url="https://box.test", transport=httpx.MockTransport(handler))
        box = BoxClient(root_folder_id="", http_client=http_client)
        assert await box.is_under_root("f1", "file") is False

    @pytest.mark.asyncio
    async def test_open_read_stream(self, box):
        stream = await box.open_read_stream("f1")
        data = b"".join([chunk async for chunk in stream.aiter_bytes()])
        await stream.aclose()
        assert data == b"file content"

        assert await box.open_read_stream("f2") is None

    @pytest.mark.asyncio
    async def test_unconfigured_client(self, caplog):
        with caplog.at_level(logging.WARNING, logger="assistant.common.box_client"):
            box = BoxClient(access_token="", root_folder_id="ROOT")
        assert "Box client not initialized" in caplog.text
        assert box.is_configured is False
        assert await box.list_folder_items("ROOT") == []
        assert await box.get_file_info("f1") is None
        assert await box.open_read_stream("f1") is None
        assert await box.is_under_root("f1", "file") is False
