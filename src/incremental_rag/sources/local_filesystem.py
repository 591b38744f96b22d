"""
Local file system document source.

Walks the files and folders named by the ``LocalFileSystem.json`` path specs
and yields every supported file as a raw document.
"""

import asyncio
import logging
import platform
from collections.abc import AsyncIterator
from pathlib import Path

from incremental_rag.core.cancellation import CancellationToken
from incremental_rag.core.interfaces import IDocumentSource
from incremental_rag.models import PathSpec, RawDocument
from incremental_rag.parsers.document_types import DocumentTypeFactory
from incremental_rag.sources.path_provider import PathSpecProvider

logger = logging.getLogger(__name__)


class LocalFileSystemSource(IDocumentSource):
    """
    Document source over directories and files on the local machine.

    References are ``<host>:LocalFileSystem@<absolute posix path>``, so the
    same file keeps its reference across runs.
    """

    SOURCE_NAME = "LocalFileSystem"

    def __init__(
        self,
        config,
        path_specs: list[PathSpec] | None = None,
        document_types: DocumentTypeFactory | None = None,
    ):
        self.config = config
        self._path_specs = path_specs
        self.document_types = document_types or DocumentTypeFactory()
        self._prefix = f"{platform.node() or 'localhost'}:{self.SOURCE_NAME}"
        self._failed_path_specs: list[PathSpec] = []
        self._max_size_bytes = config.max_file_size_mb * 1024 * 1024

    @property
    def prefix(self) -> str:
        return self._prefix

    @property
    def description(self) -> str:
        return "Local File System"

    @property
    def failed_path_specs(self) -> list[PathSpec]:
        return list(self._failed_path_specs)

    def path_specs(self) -> list[PathSpec]:
        """Get the configured path specs, loading them from the path spec directory if not given."""
        if self._path_specs is None:
            return PathSpecProvider(self.config.path_spec_dir).get_paths(self.SOURCE_NAME)
        return list(self._path_specs)

    def watch_directories(self) -> list[Path]:
        """Get the existing directories covered by the path specs."""
        directories = []
        for spec in self.path_specs():
            path = Path(spec.path).expanduser()
            if path.is_dir():
                directories.append(path)
            elif path.is_file():
                directories.append(path.parent)
        return directories

    async def get_documents(self, cancel: CancellationToken) -> AsyncIterator[RawDocument]:
        self._failed_path_specs = []

        for spec in self.path_specs():
            cancel.raise_if_cancelled("local file enumeration")

            root = Path(spec.path).expanduser()
            if not root.exists():
                logger.warning("Path %s does not exist, skipping", root)
                continue

            try:
                files = await asyncio.to_thread(self._collect_files, root)
            except OSError as e:
                logger.error("Failed to enumerate %s: %s", root, e)
                self._failed_path_specs.append(spec)
                continue

            logger.info("Found %d files under %s", len(files), root)

            for file_path in files:
                cancel.raise_if_cancelled("local file enumeration")

                try:
                    content = await asyncio.to_thread(file_path.read_bytes)
                except FileNotFoundError:
                    logger.info("File %s disappeared during enumeration", file_path)
                    continue
                except OSError as e:
                    logger.error("Failed to read %s: %s", file_path, e)
                    if spec not in self._failed_path_specs:
                        self._failed_path_specs.append(spec)
                    continue

                yield RawDocument(
                    source_prefix=self.prefix,
                    path=file_path.resolve().as_posix(),
                    content=content,
                    description=spec.description,
                )

    def _collect_files(self, root: Path) -> list[Path]:
        candidates = [root] if root.is_file() else sorted(p for p in root.rglob("*") if p.is_file())
        return [path for path in candidates if self._accepts(path)]

    def _accepts(self, path: Path) -> bool:
        if not self.config.is_file_supported(path) or not self.document_types.is_supported(path.name):
            return False
        if self.config.should_ignore_file(path):
            logger.debug("Ignoring %s", path)
            return False
        if path.stat().st_size > self._max_size_bytes:
            logger.warning("Skipping %s: larger than %d MB", path, self.config.max_file_size_mb)
            return False
        return True
