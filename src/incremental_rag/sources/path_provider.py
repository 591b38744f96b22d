"""Path spec loading for document sources."""

import logging
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from incremental_rag.models import ConfigurationError, PathSpec

logger = logging.getLogger(__name__)

_PATH_SPECS = TypeAdapter(list[PathSpec])


class PathSpecProvider:
    """
    Reads the locations a source should scan from ``<path_spec_dir>/<SourceName>.json``.

    The file holds a JSON array of ``{"path": ..., "description": ...}`` objects.
    """

    def __init__(self, path_spec_dir: str | Path):
        self.path_spec_dir = Path(path_spec_dir)

    def spec_file(self, source_name: str) -> Path:
        return self.path_spec_dir / f"{source_name}.json"

    def get_paths(self, source_name: str) -> list[PathSpec]:
        """
        Load the path specs for a source.

        Args:
            source_name: Source name, e.g. ``LocalFileSystem``

        Returns:
            Path specs in file order; empty if the file does not exist

        Raises:
            ConfigurationError: If the file is not a valid list of path specs
        """
        spec_file = self.spec_file(source_name)
        if not spec_file.exists():
            logger.warning("No path spec file for %s at %s", source_name, spec_file)
            return []

        try:
            specs = _PATH_SPECS.validate_json(spec_file.read_bytes())
        except (ValidationError, OSError) as e:
            raise ConfigurationError(
                f"Invalid path spec file {spec_file}: {e}",
                config_key="path_spec_dir",
                expected_type="JSON array of {path, description}",
                actual_value=spec_file,
            ) from e

        logger.debug("Loaded %d path specs for %s", len(specs), source_name)
        return specs
