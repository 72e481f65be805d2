"""Storage lifecycle outside the per-run workspace."""

from selfcheck.retention.archivist import Archivist
from selfcheck.retention.reclaimer import ArtifactReclaimer, format_bytes

__all__ = [
    "ArtifactReclaimer",
    "Archivist",
    "format_bytes",
]
