from __future__ import annotations

import datetime
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from config import BACKUP_ROOT
from database import ComplianceDatabase


logger = logging.getLogger(__name__)

DEFAULT_BACKUP_FILENAME = "maneawa-backup.sqlite"
BACKUP_SUFFIX = ".sqlite"


def _timestamp() -> str:
    """Generate timestamp string for backup naming."""
    return datetime.datetime.now().strftime("%Y%m%d_%H%M%S")


def backup_database(db: ComplianceDatabase, target: Path) -> Path:
    """Copy the current database snapshot to a caller-chosen file.

    Args:
        db: Open database whose snapshot is copied
        target: Destination file; a directory gets the default backup name

    Returns:
        Path of the written backup
    """
    target = Path(target)
    if target.is_dir():
        target = target / DEFAULT_BACKUP_FILENAME
    written = db.copy_to(target)
    logger.info("Database backed up to %s", written)
    return written


def create_backup(db: ComplianceDatabase, backup_name: Optional[str] = None) -> Path:
    """Write a timestamped backup under BACKUP_ROOT.

    Args:
        db: Open database whose snapshot is copied
        backup_name: Optional file stem, defaults to ``backup_<timestamp>``

    Returns:
        Path of the written backup
    """
    BACKUP_ROOT.mkdir(parents=True, exist_ok=True)
    stem = backup_name or f"backup_{_timestamp()}"
    return backup_database(db, BACKUP_ROOT / f"{stem}{BACKUP_SUFFIX}")


def auto_backup(db: ComplianceDatabase) -> Path:
    """Create an automatic backup with 'auto_' prefix."""
    return create_backup(db, f"auto_{_timestamp()}")


def list_backups() -> List[Dict[str, Any]]:
    """List backups under BACKUP_ROOT, newest first.

    Returns:
        List of dicts with 'name', 'path', 'created', 'size' keys.
    """
    if not BACKUP_ROOT.exists():
        return []

    backups = []
    for item in sorted(BACKUP_ROOT.glob(f"*{BACKUP_SUFFIX}"), key=lambda p: p.stat().st_mtime, reverse=True):
        if not item.is_file():
            continue
        stat = item.stat()
        backups.append(
            {
                "name": item.stem,
                "path": item,
                "created": datetime.datetime.fromtimestamp(stat.st_mtime),
                "size": stat.st_size,
            }
        )
    return backups


def cleanup_old_auto_backups(keep_count: int = 5) -> int:
    """Remove old automatic backups, keeping only the most recent ones.

    Returns:
        Number of backups removed
    """
    auto_backups = [entry for entry in list_backups() if entry["name"].startswith("auto_")]
    removed = 0
    for entry in auto_backups[keep_count:]:
        entry["path"].unlink()
        removed += 1
    if removed:
        logger.info("Removed %s old automatic backups", removed)
    return removed


def format_size(size_bytes: float) -> str:
    """Format byte size to human-readable string (e.g. "1.5 MB")."""
    for unit in ["B", "KB", "MB", "GB"]:
        if size_bytes < 1024.0:
            return f"{size_bytes:.1f} {unit}"
        size_bytes /= 1024.0
    return f"{size_bytes:.1f} TB"
