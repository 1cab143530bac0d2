"""Migration settings."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from places_transact.transact.driver import MAX_TRANSACT_BUFFER_SIZE

logger = logging.getLogger(__name__)


def _env_int(name: str, default: int) -> int:
    """Read a non-negative integer setting, ignoring values that do not parse."""
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not an integer, using %d", name, raw, default)
        return default
    if value < 0:
        logger.warning("Ignoring %s=%r: must be >= 0, using %d", name, raw, default)
        return default
    return value


DEFAULT_OUTPUT_PATH = Path(os.environ.get("PLACES_TRANSACT_OUTPUT", "./mentat_places.db"))
DEFAULT_BUFFER_SIZE = _env_int("PLACES_TRANSACT_BUFFER_SIZE", MAX_TRANSACT_BUFFER_SIZE)


@dataclass
class MigrationConfig:
    """Values the migration consumes; parsing them is the caller's job.

    ``buffer_size`` of 0 commits every place and every visit separately.
    """

    source_path: Path
    output_path: Path = DEFAULT_OUTPUT_PATH
    buffer_size: int = DEFAULT_BUFFER_SIZE
    overwrite: bool = False
    schema_path: Path | None = None

    def __post_init__(self) -> None:
        self.source_path = Path(self.source_path)
        self.output_path = Path(self.output_path)
        if self.schema_path is not None:
            self.schema_path = Path(self.schema_path)
        if self.buffer_size < 0:
            raise ValueError(f"buffer_size must be >= 0, got {self.buffer_size}")

    @classmethod
    def realistic(cls, source_path: Path, **kwargs) -> MigrationConfig:
        """One transaction per place and per visit."""
        return cls(source_path=source_path, buffer_size=0, **kwargs)
