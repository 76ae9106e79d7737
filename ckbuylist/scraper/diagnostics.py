"""
CK Buylist: Rendered HTML snapshots

Debug-only. Writes a page's markup to the temp directory and optionally
opens it in the platform viewer. Nothing here may fail the scrape: every
error is logged and dropped.
"""

from __future__ import annotations

import re
import subprocess
import sys
import tempfile
from datetime import datetime, timezone
from pathlib import Path

import structlog

logger = structlog.get_logger(__name__)

_SLUG_UNSAFE = re.compile(r"[^a-z0-9_-]+")


def safe_slug(value: str | None) -> str:
    return _SLUG_UNSAFE.sub("_", (value or "unknown").lower())[:80]


class HtmlSnapshotSink:
    """
    Persists rendered pages for inspection.

    Args:
        auto_open: Open each snapshot after writing it.
        directory: Target directory, defaults to the system temp dir.
        run_id: Shared by every snapshot of one run.
    """

    def __init__(
        self,
        auto_open: bool = False,
        directory: Path | None = None,
        run_id: str | None = None,
    ) -> None:
        self.auto_open = auto_open
        self.directory = directory or Path(tempfile.gettempdir())
        self.run_id = run_id or datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S")

    def path_for(self, edition: str, page: int, row_number: int | None = None) -> Path:
        row = f"_r{row_number}" if row_number is not None else ""
        return self.directory / f"ck_{safe_slug(edition)}{row}_{self.run_id}_p{page}.html"

    def record(self, edition: str, page: int, html: str, row_number: int | None = None) -> Path | None:
        """
        Write the snapshot; returns its path, or None when writing failed.

        ``row_number`` keeps two filters on the same edition apart.
        """
        path = self.path_for(edition, page, row_number)
        try:
            path.write_text(html, encoding="utf-8", errors="replace")
        except (OSError, ValueError) as e:
            logger.warning("snapshot_write_failed", path=str(path), error=str(e), source="diagnostics")
            return None

        logger.debug("snapshot_written", path=str(path), source="diagnostics")
        if self.auto_open:
            self._open(path)
        return path

    def _open(self, path: Path) -> None:
        if sys.platform == "darwin":
            cmd = ["open", str(path)]
        elif sys.platform == "win32":
            cmd = ["cmd", "/c", "start", "", str(path)]
        else:
            cmd = ["xdg-open", str(path)]

        try:
            # Detached so the viewer never holds up the run.
            subprocess.Popen(
                cmd,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
            logger.info("snapshot_opened", path=str(path), source="diagnostics")
        except (OSError, ValueError) as e:
            logger.warning("snapshot_open_failed", path=str(path), error=str(e), source="diagnostics")
