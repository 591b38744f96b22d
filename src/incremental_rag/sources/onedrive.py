"""
OneDrive document source over Microsoft Graph.

Resolves each path spec in the signed-in user's drive, expands folders
iteratively page by page, and downloads every supported file. Every Graph
call runs under the resilience policy.
"""

import logging
from collections.abc import AsyncIterator
from typing import Any
from urllib.parse import quote

import httpx

from incremental_rag.core.cancellation import CancellationToken
from incremental_rag.core.interfaces import IDocumentSource
from incremental_rag.core.resilience import ResiliencePolicy, is_transient_status
from incremental_rag.models import ConfigurationError, DocumentSourceError, PathSpec, RawDocument
from incremental_rag.parsers.document_types import DocumentTypeFactory
from incremental_rag.sources.path_provider import PathSpecProvider

logger = logging.getLogger(__name__)


def drive_item_path(item: dict[str, Any]) -> str:
    """
    Build the drive-relative path of an item from its parent reference.

    Graph reports parent paths as ``/drive/root:/Folder/Sub``; the part after
    the colon is the folder inside the drive.
    """
    parent_path = (item.get("parentReference") or {}).get("path") or ""
    folder = parent_path.split(":", 1)[1] if ":" in parent_path else ""
    folder = folder.strip("/")
    name = item.get("name", "")
    return f"{folder}/{name}" if folder else name


class OneDriveSource(IDocumentSource):
    """
    Document source over the signed-in user's OneDrive.

    The prefix is ``<display name>:OneDriveFileSystem``; it is resolved from
    ``/me`` when enumeration starts.
    """

    SOURCE_NAME = "OneDriveFileSystem"

    def __init__(
        self,
        config,
        client: httpx.AsyncClient | None = None,
        path_specs: list[PathSpec] | None = None,
        document_types: DocumentTypeFactory | None = None,
        policy: ResiliencePolicy | None = None,
    ):
        self.config = config
        self._path_specs = path_specs
        self.document_types = document_types or DocumentTypeFactory()
        self.policy = policy or ResiliencePolicy(config)
        self._client = client
        self._owns_client = client is None
        self._prefix = f"OneDrive:{self.SOURCE_NAME}"
        self._failed_path_specs: list[PathSpec] = []

    @property
    def prefix(self) -> str:
        return self._prefix

    @property
    def description(self) -> str:
        return "OneDrive File System"

    @property
    def failed_path_specs(self) -> list[PathSpec]:
        return list(self._failed_path_specs)

    def path_specs(self) -> list[PathSpec]:
        if self._path_specs is None:
            return PathSpecProvider(self.config.path_spec_dir).get_paths(self.SOURCE_NAME)
        return list(self._path_specs)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            if not self.config.onedrive_access_token:
                raise ConfigurationError(
                    "onedrive_access_token is required for the OneDrive source",
                    config_key="onedrive_access_token",
                )
            self._client = httpx.AsyncClient(
                base_url=self.config.onedrive_graph_url,
                headers={"Authorization": f"Bearer {self.config.onedrive_access_token.get_secret_value()}"},
                timeout=self.config.openai_timeout_seconds,
                follow_redirects=True,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _request(self, url: str) -> httpx.Response:
        response = await self._get_client().get(url)
        if response.is_error:
            raise DocumentSourceError(
                f"Graph request {url} failed with {response.status_code}",
                source=self.SOURCE_NAME,
                path=url,
                status_code=response.status_code,
                transient=is_transient_status(response.status_code),
            )
        return response

    async def _get_json(self, url: str) -> dict[str, Any]:
        response = await self.policy.run("graph request", self._request, url)
        return response.json()

    async def _download(self, item_id: str) -> bytes:
        response = await self.policy.run("graph download", self._request, f"/me/drive/items/{item_id}/content")
        return response.content

    async def get_documents(self, cancel: CancellationToken) -> AsyncIterator[RawDocument]:
        self._failed_path_specs = []

        user = await self._get_json("/me")
        display_name = user.get("displayName") or user.get("userPrincipalName") or "OneDrive"
        self._prefix = f"{display_name}:{self.SOURCE_NAME}"
        logger.info("Enumerating OneDrive for %s", display_name)

        for spec in self.path_specs():
            cancel.raise_if_cancelled("onedrive enumeration")

            try:
                root_item = await self._get_json(f"/me/drive/root:/{quote(spec.path.strip('/'))}")
            except DocumentSourceError as e:
                if e.status_code == 404:
                    logger.warning("OneDrive path %s no longer exists, skipping", spec.path)
                else:
                    logger.error("Failed to resolve OneDrive path %s: %s", spec.path, e)
                    self._failed_path_specs.append(spec)
                continue

            try:
                async for item in self._walk(root_item, cancel):
                    cancel.raise_if_cancelled("onedrive download")

                    path = drive_item_path(item)
                    if not self.document_types.is_supported(item["name"]) or self.config.should_ignore_file(path):
                        logger.debug("Skipping unsupported OneDrive file %s", path)
                        continue

                    content = await self._download(item["id"])
                    yield RawDocument(
                        source_prefix=self.prefix,
                        path=path,
                        content=content,
                        description=spec.description,
                    )
            except (DocumentSourceError, httpx.HTTPError) as e:
                logger.error("Enumeration of OneDrive path %s failed: %s", spec.path, e)
                self._failed_path_specs.append(spec)

    async def _walk(self, root_item: dict[str, Any], cancel: CancellationToken) -> AsyncIterator[dict[str, Any]]:
        """Yield every file under a drive item, expanding folders with an explicit stack."""
        stack = [root_item]

        while stack:
            item = stack.pop()
            if "folder" not in item:
                yield item
                continue

            children: list[dict[str, Any]] = []
            url: str | None = f"/me/drive/items/{item['id']}/children"
            while url:
                cancel.raise_if_cancelled("onedrive paging")

                page = await self._get_json(url)
                children.extend(page.get("value", []))
                url = page.get("@odata.nextLink")

            logger.debug("Expanded folder %s: %d children", item.get("name"), len(children))
            # Reversed so the stack pops children in listing order
            stack.extend(reversed(children))
