"""Generational rotation of produced report snapshots.

Layout under the artifacts root::

    active/latest/          most recent run's raw artifacts
    active/snapshots/<n>/   timestamped copies of latest
    archive/YYYY-MM/<n>/    snapshots rotated out of the active set
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Callable
from datetime import datetime
from pathlib import Path, PurePosixPath

from selfcheck.core.errors import RetentionError, SnapshotError
from selfcheck.core.models import SnapshotInfo, SnapshotStatus
from selfcheck.retention.reclaimer import dir_size

logger = logging.getLogger(__name__)

SNAPSHOT_TIME_FORMAT = "%Y-%m-%d_%H-%M-%S"
BUCKET_FORMAT = "%Y-%m"


def subtract_months(moment: datetime, months: int) -> datetime:
    """Move a datetime back by whole months, clamping the day to the target month."""
    total = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(total, 12)
    month += 1
    for day in (moment.day, 30, 29, 28):
        try:
            return moment.replace(year=year, month=month, day=min(day, moment.day))
        except ValueError:
            continue
    raise ValueError(f"cannot subtract {months} months from {moment}")


def parse_bucket(name: str) -> datetime | None:
    """Parse a YYYY-MM archive bucket name, or None if it is not one."""
    if len(name) != 7:
        return None
    try:
        return datetime.strptime(name, BUCKET_FORMAT)
    except ValueError:
        return None


class Archivist:
    """Owns the active -> archive transition of report snapshots."""

    def __init__(self, root_dir: Path, now: Callable[[], datetime] = datetime.now) -> None:
        self.root_dir = root_dir
        self.now = now

    @property
    def latest_dir(self) -> Path:
        return self.root_dir / "active" / "latest"

    @property
    def snapshots_dir(self) -> Path:
        return self.root_dir / "active" / "snapshots"

    @property
    def archive_dir(self) -> Path:
        return self.root_dir / "archive"

    def create_snapshot(self, name: str = "") -> Path:
        """Copy everything in latest into a new snapshot directory.

        Latest is left in place.

        Args:
            name: Snapshot name; ``snapshot_<timestamp>`` when empty. Only the
                final path component is used.

        Returns:
            Path of the new snapshot directory.

        Raises:
            SnapshotError: Invalid name, or latest is missing or empty.
        """
        if not name:
            name = "snapshot_" + self.now().strftime(SNAPSHOT_TIME_FORMAT)

        clean_name = PurePosixPath(name.replace("\\", "/")).name
        snapshot_dir = self.snapshots_dir / clean_name
        if clean_name in ("", ".", ".."):
            raise SnapshotError(f"invalid snapshot name: {name}")
        if snapshot_dir.resolve().parent != self.snapshots_dir.resolve():
            raise SnapshotError(f"invalid snapshot name: {name}")

        if not self.latest_dir.is_dir():
            raise SnapshotError(
                f"cannot create snapshot: latest findings directory missing: {self.latest_dir}"
            )
        entries = sorted(self.latest_dir.iterdir())
        if not entries:
            raise SnapshotError("cannot create snapshot: latest findings directory is empty")

        try:
            snapshot_dir.mkdir(parents=True, exist_ok=True)
            for entry in entries:
                target = snapshot_dir / entry.name
                if entry.is_dir():
                    shutil.copytree(entry, target, dirs_exist_ok=True)
                else:
                    shutil.copy2(entry, target)
        except OSError as e:
            raise SnapshotError(f"failed to create snapshot {clean_name}: {e}") from e

        logger.debug(f"Created snapshot {snapshot_dir} from {len(entries)} entries")
        return snapshot_dir

    def _snapshot_names(self) -> list[str]:
        return sorted(p.name for p in self.snapshots_dir.iterdir() if p.is_dir())

    def archive_old_snapshots(self, max_active: int) -> list[str]:
        """Move all but the newest max_active snapshots into this month's bucket.

        Snapshot names sort chronologically, so the lexicographically largest
        names are kept.

        Returns:
            Names of the snapshots that were archived.
        """
        if not self.snapshots_dir.exists():
            return []
        try:
            names = self._snapshot_names()
        except OSError as e:
            raise RetentionError(f"failed to list snapshots: {e}") from e

        if len(names) <= max_active:
            return []

        to_archive = names[: len(names) - max_active]
        bucket = self.archive_dir / self.now().strftime(BUCKET_FORMAT)
        try:
            bucket.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise RetentionError(f"failed to create archive bucket {bucket}: {e}") from e

        for name in to_archive:
            if (bucket / name).exists():
                raise RetentionError(
                    f"failed to archive snapshot {name}: {bucket / name} already exists"
                )
            try:
                shutil.move(str(self.snapshots_dir / name), str(bucket / name))
            except OSError as e:
                raise RetentionError(f"failed to archive snapshot {name}: {e}") from e
            logger.debug(f"Archived snapshot {name} into {bucket.name}")

        return to_archive

    def cleanup_archives(self, retention_months: int) -> list[str]:
        """Remove archive buckets older than the retention window.

        Buckets whose names do not parse as YYYY-MM are never touched.

        Returns:
            Names of the removed buckets.
        """
        if not self.archive_dir.exists():
            return []

        cutoff = subtract_months(self.now(), retention_months)
        removed: list[str] = []
        for entry in sorted(self.archive_dir.iterdir()):
            if not entry.is_dir():
                continue
            bucket_date = parse_bucket(entry.name)
            if bucket_date is None:
                continue
            if bucket_date < cutoff:
                try:
                    shutil.rmtree(entry)
                except OSError as e:
                    logger.warning(f"Failed to remove archive bucket {entry}: {e}")
                    continue
                removed.append(entry.name)
        return removed

    def get_active_snapshots(self) -> list[SnapshotInfo]:
        """List snapshots in the active set, oldest modification time first."""
        if not self.snapshots_dir.exists():
            return []
        return self._describe(self.snapshots_dir.iterdir(), SnapshotStatus.ACTIVE)

    def get_archived_snapshots(self) -> list[SnapshotInfo]:
        """List snapshots in every archive bucket, oldest modification time first."""
        if not self.archive_dir.exists():
            return []
        entries = [
            snapshot
            for bucket in self.archive_dir.iterdir()
            if bucket.is_dir()
            for snapshot in bucket.iterdir()
        ]
        return self._describe(entries, SnapshotStatus.ARCHIVED)

    def _describe(self, entries, status: SnapshotStatus) -> list[SnapshotInfo]:
        infos: list[SnapshotInfo] = []
        for entry in entries:
            if not entry.is_dir():
                continue
            try:
                stat = entry.stat()
                size = dir_size(entry)
            except OSError:
                continue
            infos.append(
                SnapshotInfo(
                    name=entry.name,
                    timestamp=datetime.fromtimestamp(stat.st_mtime),
                    size=size,
                    status=status,
                    path=entry,
                )
            )
        infos.sort(key=lambda i: (i.timestamp, i.name))
        return infos
