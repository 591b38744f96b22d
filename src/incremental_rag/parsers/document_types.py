"""
Document types: plain text extraction per file format.

Each document type turns the raw bytes of one file format into plain text.
The factory picks the type from the file extension.
"""

import logging
from pathlib import PurePath

from incremental_rag.core.interfaces import IDocumentType
from incremental_rag.models.exceptions import TextExtractionError
from incremental_rag.parsers.frontmatter_parser import FrontmatterParser

logger = logging.getLogger(__name__)


def _decode(content: bytes) -> str:
    # Tolerate a UTF-8 byte order mark and replace undecodable bytes
    return content.decode("utf-8-sig", errors="replace")


class PlainTextDocumentType(IDocumentType):
    """Plain UTF-8 text."""

    @property
    def name(self) -> str:
        return "text"

    def get_text(self, content: bytes, file_name: str) -> str:
        return _decode(content)


class MarkdownDocumentType(IDocumentType):
    """
    Markdown with optional YAML frontmatter.

    The frontmatter block is removed; its title and summary, when present,
    are placed ahead of the body so they are searchable too.
    """

    def __init__(self, parser: FrontmatterParser | None = None):
        self.parser = parser or FrontmatterParser()

    @property
    def name(self) -> str:
        return "markdown"

    def get_text(self, content: bytes, file_name: str) -> str:
        metadata, body = self.parser.parse(_decode(content), file_name)

        header = [metadata[field] for field in ("title", "summary") if metadata.get(field)]
        if not header:
            return body
        return "\n\n".join([*header, body.lstrip("\n")])


class DocumentTypeFactory:
    """Maps file extensions to document types."""

    def __init__(self):
        markdown = MarkdownDocumentType()
        text = PlainTextDocumentType()
        self._types: dict[str, IDocumentType] = {
            ".md": markdown,
            ".markdown": markdown,
            ".txt": text,
            ".text": text,
        }

    def register(self, extension: str, document_type: IDocumentType) -> None:
        """Register a document type for an extension such as ``.rst``."""
        extension = extension.lower() if extension.startswith(".") else f".{extension.lower()}"
        self._types[extension] = document_type

    def supported_extensions(self) -> set[str]:
        return set(self._types)

    def is_supported(self, file_name: str) -> bool:
        return PurePath(file_name).suffix.lower() in self._types

    def create(self, file_name: str) -> IDocumentType:
        """
        Get the document type for a file.

        Raises:
            TextExtractionError: If no document type handles the extension
        """
        extension = PurePath(file_name).suffix.lower()
        document_type = self._types.get(extension)
        if document_type is None:
            raise TextExtractionError(
                f"Unsupported document type '{extension or file_name}'",
                file_name=file_name,
                document_type=extension or None,
            )
        return document_type
