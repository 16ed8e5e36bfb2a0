import asyncio
import os
from datetime import datetime, timezone
from pathlib import Path

import structlog

from tokenstat.scanner.base import ScannedFile, ScanRequest, ScanResult

logger = structlog.get_logger()

DEFAULT_MAX_FILES = 2000


class LocalLogScanner:
    """
    LocalLogScanner implements the LogScanner protocol against the
    local filesystem. Matches are read newest first and capped at
    max_files; the result is flagged as truncated when the cap
    cut files off.
    """

    def __init__(self, max_files: "int" = DEFAULT_MAX_FILES) -> "None":
        self._max_files = max_files

    async def scan_log_files(self, request: "ScanRequest") -> "ScanResult":
        return await asyncio.to_thread(self._scan, request, False)

    async def scan_settings_files(self, request: "ScanRequest") -> "ScanResult":
        return await asyncio.to_thread(self._scan, request, True)

    def _scan(self, request: "ScanRequest", bounded: "bool") -> "ScanResult":
        base = Path(os.path.expanduser(request.base_path))
        if not base.is_dir():
            logger.debug("scan_base_path_missing", base_path=str(base))
            return ScanResult(success=True)

        try:
            candidates = self._collect(base, request, bounded)
        except PermissionError:
            logger.warning("scan_permission_denied", base_path=str(base))
            return ScanResult(success=False, error="PERMISSION_DENIED")

        # most recently modified first
        candidates.sort(key=lambda item: item[1], reverse=True)
        selected = candidates[: self._max_files]

        files: "list[ScannedFile]" = []
        for path, _ in selected:
            try:
                text = path.read_text(encoding="utf-8", errors="replace")
            except OSError as exc:
                logger.debug("scan_file_unreadable", path=str(path), error=str(exc))
                continue
            files.append(ScannedFile(path=str(path), lines=tuple(text.splitlines())))

        return ScanResult(
            success=True,
            files=tuple(files),
            truncated=len(candidates) > self._max_files,
            total_matched=len(candidates),
            scanned_count=len(selected),
        )

    @staticmethod
    def _collect(
        base: "Path",
        request: "ScanRequest",
        bounded: "bool",
    ) -> "list[tuple[Path, datetime]]":
        candidates: "list[tuple[Path, datetime]]" = []
        for path in base.glob(request.pattern):
            try:
                if not path.is_file():
                    continue
                mtime = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
            except OSError:
                continue

            if mtime < request.start:
                continue
            if bounded and mtime >= request.end:
                continue
            candidates.append((path, mtime))
        return candidates
