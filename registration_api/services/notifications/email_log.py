"""
Read side of the LogChannel's JSONL file, for the admin email-log endpoints.
"""

import asyncio
import json
from pathlib import Path
from typing import Any

from registration_api.errors import ServerError
from registration_api.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class EmailLogReader:
    def __init__(self, log_path: str | None = None):
        self.log_path = Path(log_path) if log_path else None

    def _read_lines(self) -> list[str]:
        if self.log_path is None or not self.log_path.exists():
            return []
        with self.log_path.open(encoding="utf-8") as f:
            return f.readlines()

    async def entries(self, kind: str | None = None) -> list[dict[str, Any]]:
        """
        Logged emails in the order they were written, optionally only one kind.

        Lines that aren't valid JSON objects are skipped.

        Raises:
            ServerError: the log file exists but can't be read
        """
        try:
            lines = await asyncio.to_thread(self._read_lines)
        except OSError as e:
            logger.error("Failed to read email log", path=str(self.log_path), error=str(e))
            raise ServerError("Failed to get email logs") from e

        entries = []
        skipped = 0
        for line in lines:
            line = line.strip()
            if not line:
                continue
            try:
                entry = json.loads(line)
            except json.JSONDecodeError:
                skipped += 1
                continue
            if not isinstance(entry, dict):
                skipped += 1
                continue
            if kind is None or entry.get("kind") == kind:
                entries.append(entry)

        if skipped:
            logger.warning("Skipped malformed email log lines", path=str(self.log_path), skipped=skipped)
        return entries
