"""
Parsers package for document text extraction.

This package turns raw document bytes into plain text, with specific
support for markdown files and YAML frontmatter.
"""

from .document_types import DocumentTypeFactory, MarkdownDocumentType, PlainTextDocumentType
from .frontmatter_parser import FrontmatterParser

__all__ = [
    "DocumentTypeFactory",
    "FrontmatterParser",
    "MarkdownDocumentType",
    "PlainTextDocumentType",
]
