"""
=============================================================================
SUBMISSION STORE
=============================================================================

The one piece of state shared by every connection. Two modes:

    OVERWRITE (default, single-slot)
        The file holds only the most recent record, as plain text:

            Title: Hello
            Content: It works!

    APPEND
        Every record is kept, one JSON object per line:

            {"stored_at": "2026-10-18T09:00:00+00:00", "record": "Title: ..."}

=============================================================================
WHY WRITES CAN'T INTERLEAVE
=============================================================================

Two POSTs arriving together must never produce a file that mixes bytes
from both. Each mode closes that race differently:

    OVERWRITE:  write to a temp file in the same directory, fsync, then
                os.replace() it over the target. Rename is atomic on POSIX,
                so a reader sees the old record or the new one, never half
                of each. This holds across processes too.

    APPEND:     the whole line goes out in ONE os.write() on an O_APPEND
                descriptor, so the kernel positions and writes it as a unit.

On top of that, a lock serializes writers inside one process.

=============================================================================
"""

import json
import logging
import os
import tempfile
import threading
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from .exceptions import StoreWriteFailure


class StoreMode(Enum):
    """How the store keeps records."""

    OVERWRITE = "overwrite"
    APPEND = "append"


class SubmissionStore:
    """
    Persists form submission records.

    Usage:
        store = SubmissionStore("output/post_data.txt")
        store.save("Title: T\\nContent: C")
        store.latest()  # → "Title: T\\nContent: C"
    """

    def __init__(
        self,
        path: Union[str, Path],
        mode: Union[StoreMode, str] = StoreMode.OVERWRITE,
        logger: Optional[logging.Logger] = None,
    ):
        self.path = Path(path)
        self.mode = StoreMode(mode)
        self.logger = logger or logging.getLogger(__name__)
        self._lock = threading.Lock()

    def save(self, record: str) -> int:
        """
        Persist one record.

        Args:
            record: The record text.

        Returns:
            Number of record bytes persisted (UTF-8 length of the record).

        Raises:
            StoreWriteFailure: If the directory or file cannot be written.
        """
        data = record.encode("utf-8")
        with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                if self.mode is StoreMode.OVERWRITE:
                    self._replace(data)
                else:
                    self._append(record)
            except OSError as e:
                self.logger.error(f"Failed to write submission to {self.path}: {e}")
                raise StoreWriteFailure(f"Cannot write {self.path}: {e}") from e

        self.logger.info(f"Stored submission ({len(data)} bytes) in {self.path}")
        return len(data)

    def latest(self) -> Optional[str]:
        """
        Return the most recent record, or None if nothing was stored yet.
        """
        with self._lock:
            try:
                if self.mode is StoreMode.OVERWRITE:
                    return self.path.read_bytes().decode("utf-8")
                return self._last_appended()
            except FileNotFoundError:
                return None

    # ─────────────────────────────────────────────────────────────────────
    # WRITE STRATEGIES
    # ─────────────────────────────────────────────────────────────────────

    def _replace(self, data: bytes):
        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent,
            prefix=f".{self.path.name}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "wb") as tmp:
                tmp.write(data)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            # The temp file only exists if replace() didn't happen
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise

    def _append(self, record: str):
        line = json.dumps({
            "stored_at": datetime.now(timezone.utc).isoformat(),
            "record": record,
        }, ensure_ascii=False) + "\n"
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o644)
        try:
            os.write(fd, line.encode("utf-8"))
            os.fsync(fd)
        finally:
            os.close(fd)

    def _last_appended(self) -> Optional[str]:
        last = None
        with open(self.path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    last = json.loads(line)["record"]
                except (json.JSONDecodeError, KeyError, TypeError):
                    self.logger.warning(f"Skipping unreadable line in {self.path}")
        return last
