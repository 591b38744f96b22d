"""
Frontmatter parser for markdown documents.

Separates an optional YAML frontmatter block from the markdown body so the
body can be indexed, and keeps the few descriptive fields that are worth
folding into the indexed text.
"""

import logging
from typing import Any

import frontmatter

from incremental_rag.models.exceptions import TextExtractionError

logger = logging.getLogger(__name__)


class FrontmatterParser:
    """
    Parser for YAML frontmatter in markdown text.

    Only descriptive fields are kept; anything else in the frontmatter is
    dropped from the indexed text.
    """

    TEXT_FIELDS = ("title", "summary")
    LIST_FIELDS = ("tags", "keywords")

    def parse(self, content: str, file_name: str | None = None) -> tuple[dict[str, Any], str]:
        """
        Split markdown text into frontmatter metadata and body.

        Args:
            content: Markdown text with optional frontmatter
            file_name: Optional file name for error context

        Returns:
            Tuple of (metadata, body)

        Raises:
            TextExtractionError: If the frontmatter block is malformed
        """
        if not self.has_frontmatter(content):
            return {}, content

        try:
            post = frontmatter.loads(content)
        except Exception as e:
            raise TextExtractionError(
                f"Malformed frontmatter in {file_name or 'markdown text'}: {e}",
                file_name=file_name,
                document_type="markdown",
                underlying_error=e,
            ) from e

        return self._extract_metadata(post.metadata, file_name), post.content

    def _extract_metadata(self, raw_metadata: dict[str, Any], file_name: str | None) -> dict[str, Any]:
        metadata: dict[str, Any] = {}

        for field in self.TEXT_FIELDS:
            value = raw_metadata.get(field)
            if value is not None and str(value).strip():
                metadata[field] = str(value).strip()

        for field in self.LIST_FIELDS:
            value = raw_metadata.get(field)
            if value is None:
                continue
            items = value if isinstance(value, list) else str(value).split(",")
            cleaned = [str(item).strip() for item in items if str(item).strip()]
            if cleaned:
                metadata[field] = cleaned

        ignored = set(raw_metadata) - set(self.TEXT_FIELDS) - set(self.LIST_FIELDS)
        if ignored:
            logger.debug("Ignoring frontmatter fields %s in %s", sorted(ignored), file_name or "markdown text")

        return metadata

    @staticmethod
    def has_frontmatter(content: str) -> bool:
        """Check if content starts with a frontmatter delimiter."""
        return content.lstrip().startswith("---")
