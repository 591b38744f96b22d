"""
Unit tests for OneDriveSource.

Microsoft Graph is simulated with an httpx mock transport.
"""

import httpx
import pytest
from incremental_rag.core import CancellationToken
from incremental_rag.models import ConfigurationError, PathSpec
from incremental_rag.sources import OneDriveSource
from incremental_rag.sources.onedrive import drive_item_path

GRAPH = "https://graph.example/v1.0"


def _file(item_id: str, name: str, parent: str) -> dict:
    return {"id": item_id, "name": name, "file": {}, "parentReference": {"path": f"/drive/root:{parent}"}}


def _folder(item_id: str, name: str, parent: str) -> dict:
    return {"id": item_id, "name": name, "folder": {}, "parentReference": {"path": f"/drive/root:{parent}"}}


class FakeGraph:
    """Minimal Graph drive: folders, children pages and file contents."""

    def __init__(self):
        self.items: dict[str, dict] = {}
        self.pages: dict[str, list[dict]] = {}
        self.contents: dict[str, bytes] = {}
        self.failures: dict[str, list[int]] = {}
        self.requests: list[str] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/v1.0")
        query = request.url.params.get("page")
        key = f"{path}?page={query}" if query else path
        self.requests.append(key)

        if self.failures.get(key):
            return httpx.Response(self.failures[key].pop(0))
        if path == "/me":
            return httpx.Response(200, json={"displayName": "Ada Lovelace"})
        if path.startswith("/me/drive/root:/"):
            item = self.items.get(path.removeprefix("/me/drive/root:/"))
            return httpx.Response(200, json=item) if item else httpx.Response(404)
        if path.endswith("/children"):
            item_id = path.split("/")[-2]
            pages = self.pages.get(item_id, [[]])
            index = int(query or 0)
            body = {"value": pages[index]}
            if index + 1 < len(pages):
                body["@odata.nextLink"] = f"{GRAPH}/me/drive/items/{item_id}/children?page={index + 1}"
            return httpx.Response(200, json=body)
        if path.endswith("/content"):
            return httpx.Response(200, content=self.contents[path.split("/")[-2]])
        return httpx.Response(404)


class TestOneDriveSource:
    """Test cases for OneDriveSource."""

    @pytest.fixture
    def graph(self):
        graph = FakeGraph()
        graph.items["Docs"] = _folder("docs", "Docs", "")
        graph.pages["docs"] = [
            [_file("f1", "a.md", "/Docs"), _folder("sub", "Sub", "/Docs")],
            [_file("f2", "b.txt", "/Docs"), _file("f3", "photo.jpg", "/Docs")],
        ]
        graph.pages["sub"] = [[_file("f4", "c.md", "/Docs/Sub")]]
        graph.contents.update({"f1": b"alpha", "f2": b"beta", "f3": b"jpeg", "f4": b"gamma"})
        return graph

    @pytest.fixture
    def client(self, graph):
        return httpx.AsyncClient(base_url=GRAPH, transport=httpx.MockTransport(graph.handler))

    async def _collect(self, source):
        return [document async for document in source.get_documents(CancellationToken())]

    @pytest.mark.asyncio
    async def test_walks_folders_across_pages(self, config, client):
        source = OneDriveSource(config, client=client, path_specs=[PathSpec(path="Docs", description="Docs")])

        documents = await self._collect(source)

        assert [document.path for document in documents] == ["Docs/a.md", "Docs/Sub/c.md", "Docs/b.txt"]
        assert [document.content for document in documents] == [b"alpha", b"gamma", b"beta"]
        assert source.prefix == "Ada Lovelace:OneDriveFileSystem"
        assert documents[0].reference == "Ada Lovelace:OneDriveFileSystem@Docs/a.md"
        assert source.failed_path_specs == []

    @pytest.mark.asyncio
    async def test_missing_path_is_not_a_failure(self, config, client):
        source = OneDriveSource(config, client=client, path_specs=[PathSpec(path="Gone")])

        assert await self._collect(source) == []
        assert source.failed_path_specs == []

    @pytest.mark.asyncio
    async def test_transient_errors_are_retried(self, config, client, graph):
        graph.failures["/me/drive/items/docs/children"] = [503, 429]
        source = OneDriveSource(config, client=client, path_specs=[PathSpec(path="Docs")])

        documents = await self._collect(source)

        assert len(documents) == 3
        assert source.failed_path_specs == []

    @pytest.mark.asyncio
    async def test_permanent_error_marks_spec_failed(self, config, client, graph):
        graph.failures["/me/drive/items/sub/children"] = [403]
        spec = PathSpec(path="Docs")
        source = OneDriveSource(config, client=client, path_specs=[spec])

        documents = await self._collect(source)

        assert [document.path for document in documents] == ["Docs/a.md"]
        assert source.failed_path_specs == [spec]
        assert graph.requests.count("/me/drive/items/sub/children") == 1

    @pytest.mark.asyncio
    async def test_unauthorized_resolution_marks_spec_failed(self, config, client, graph):
        graph.failures["/me/drive/root:/Docs"] = [401]
        spec = PathSpec(path="Docs")
        source = OneDriveSource(config, client=client, path_specs=[spec])

        assert await self._collect(source) == []
        assert source.failed_path_specs == [spec]

    def test_client_requires_token(self, config):
        source = OneDriveSource(config, path_specs=[])

        with pytest.raises(ConfigurationError):
            source._get_client()


def test_drive_item_path():
    assert drive_item_path({"name": "a.md", "parentReference": {"path": "/drive/root:"}}) == "a.md"
    assert drive_item_path({"name": "a.md", "parentReference": {"path": "/drive/root:/X/Y"}}) == "X/Y/a.md"
    assert drive_item_path({"name": "a.md"}) == "a.md"
