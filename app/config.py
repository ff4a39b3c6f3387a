from __future__ import annotations

import datetime
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path


APP_DIR = Path(__file__).resolve().parent
DATA_DIR = Path(os.environ.get("MANEAWA_DATA_DIR") or APP_DIR / "data")
DATABASE_FILENAME = "maneawa.sqlite"
DATABASE_PATH = DATA_DIR / DATABASE_FILENAME
BACKUP_ROOT = DATA_DIR.parent / "backups"
LOG_DIR = DATA_DIR / "logs"

APP_NAME = "Maneawa 28h チェッカー"
APP_VERSION = "1.0.0"
CONTACT_EMAIL = "support@example.com"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: int = logging.INFO, log_dir: Path | None = None) -> logging.Logger:
    """Send application logs to a dated file and stdout."""
    target_dir = log_dir or LOG_DIR
    target_dir.mkdir(parents=True, exist_ok=True)
    log_file = target_dir / f"maneawa_{datetime.datetime.now().strftime('%Y%m%d')}.log"
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[
            logging.FileHandler(log_file, encoding="utf-8"),
            logging.StreamHandler(sys.stdout),
        ],
    )
    return logging.getLogger("maneawa")


@dataclass(frozen=True)
class AppInfo:
    name: str
    version: str
    contact_email: str


def app_info() -> AppInfo:
    return AppInfo(name=APP_NAME, version=APP_VERSION, contact_email=CONTACT_EMAIL)
