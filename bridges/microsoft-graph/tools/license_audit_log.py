"""
Run logs and the cumulative skip file for the license source tools.

  <log_dir>/<tool>_<YYYYmmdd_HHMMSS>.log   one per run, "timestamp;field;..."
  <log_dir>/skipped_licenses.csv           every run, one row per kept SKU

Files are opened in append mode for each write; single writer assumed.
The directory comes from --log-dir, then LICENSE_AUDIT_LOG_DIR, then
logs/ next to the tools.
"""

import csv
import os
from datetime import datetime
from pathlib import Path

DEFAULT_LOG_DIR = Path(__file__).resolve().parent / "logs"
SKIP_FILE_NAME = "skipped_licenses.csv"

SKIP_FIELDS = [
    "User",
    "SKU",
    "Source",
    "ExtraDirectServices",
    "CriticalBlocking",
    "CriticalRedundant",
    "NonCritical",
    "NonCriticalRedundant",
]


def resolve_log_dir(override: str = None) -> Path:
    return Path(override or os.getenv("LICENSE_AUDIT_LOG_DIR") or DEFAULT_LOG_DIR)


def _append_row(path: Path, row: list, header: list = None):
    path.parent.mkdir(parents=True, exist_ok=True)
    is_new = not path.exists()
    with open(path, "a", newline="", encoding="utf-8") as f:
        writer = csv.writer(f, delimiter=";")
        if header and is_new:
            writer.writerow(header)
        writer.writerow(row)


class RunLog:
    """Timestamped per-run log, one ';'-separated record per write."""

    def __init__(self, tool: str, log_dir: str = None, started: datetime = None):
        stamp = (started or datetime.now()).strftime("%Y%m%d_%H%M%S")
        self.path = resolve_log_dir(log_dir) / f"{tool}_{stamp}.log"

    def write(self, *fields):
        now = datetime.now().isoformat(timespec="seconds")
        _append_row(self.path, [now, *("" if f is None else str(f) for f in fields)])


class SkipLog:
    """Cumulative record of directly assigned SKUs that were kept."""

    def __init__(self, log_dir: str = None):
        self.path = resolve_log_dir(log_dir) / SKIP_FILE_NAME

    def record(
        self,
        user: str,
        sku: str,
        extra_direct: list,
        critical_blocking: list,
        critical_redundant: list,
        non_critical: list,
        non_critical_redundant: list,
        source: str = "Direct",
    ):
        _append_row(
            self.path,
            [
                user,
                sku,
                source,
                ",".join(extra_direct),
                ",".join(critical_blocking),
                ",".join(critical_redundant),
                ",".join(non_critical),
                ",".join(non_critical_redundant),
            ],
            header=SKIP_FIELDS,
        )
