"""Append-only JSONL audit trail for administrative commands.

Every access-control mutation and every denied check is written as one JSON
record per line.  Each record carries a UTC ISO-8601 timestamp, a session
identifier, the acting subject, and event-specific fields.

Several command processes may append to the same file at once, so each write
holds an exclusive ``fcntl.flock`` on the log handle.

Example
-------
>>> from pathlib import Path
>>> audit = AuditLogger(Path("/tmp/audit.jsonl"), subject="alice")
>>> audit.log({"event": "acl_rule_added", "rule": "allow bob:r:/repo"})
>>> audit.last_n(1)[0]["subject"]
'alice'
"""
from __future__ import annotations

import fcntl
import json
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from pkghost.errors import AuditError


class AuditLogger:
    """Append-only JSONL audit logger.

    Parameters
    ----------
    log_path:
        Path to the ``.jsonl`` audit file.  Parent directories are created
        on first write.
    subject:
        Identity stamped on every record.
    session_id:
        Optional session identifier stamped on every record.  A random UUID
        is generated if not supplied.
    """

    def __init__(
        self,
        log_path: Path,
        subject: str | None = None,
        session_id: str | None = None,
    ) -> None:
        self._log_path = log_path
        self._subject = subject
        self._session_id: str = session_id or str(uuid.uuid4())

    # ------------------------------------------------------------------
    # Write API
    # ------------------------------------------------------------------

    def log(self, entry: dict[str, object]) -> None:
        """Append an event record to the audit log.

        ``timestamp``, ``session_id`` and ``subject`` are added
        automatically and cannot be overridden by ``entry``.

        Raises
        ------
        AuditError
            If the record cannot be appended to the log file.
        """
        record: dict[str, object] = {
            **entry,
            "timestamp": datetime.now(tz=timezone.utc).isoformat(),
            "session_id": self._session_id,
            "subject": self._subject,
        }
        self._write(record)

    # ------------------------------------------------------------------
    # Read API
    # ------------------------------------------------------------------

    def read_all(self) -> list[dict[str, object]]:
        """Return all records in file order; empty if the log does not exist."""
        return list(self._iter_records())

    def query(self, filters: dict[str, object]) -> list[dict[str, object]]:
        """Return records whose top-level fields equal every filter value."""
        return [
            record
            for record in self._iter_records()
            if all(record.get(k) == v for k, v in filters.items())
        ]

    def count(self) -> int:
        """Return the total number of audit records."""
        return sum(1 for _ in self._iter_records())

    def last_n(self, n: int) -> list[dict[str, object]]:
        """Return the ``n`` most recent audit records."""
        all_records = list(self._iter_records())
        return all_records[-n:] if n < len(all_records) else all_records

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _write(self, record: dict[str, object]) -> None:
        line = json.dumps(record, default=str) + "\n"
        try:
            self._log_path.parent.mkdir(parents=True, exist_ok=True)
            with self._log_path.open("a", encoding="utf-8") as fh:
                fcntl.flock(fh, fcntl.LOCK_EX)
                try:
                    fh.write(line)
                    fh.flush()
                finally:
                    fcntl.flock(fh, fcntl.LOCK_UN)
        except OSError as exc:
            raise AuditError(f"Cannot write audit log {self._log_path}: {exc}") from exc

    def _iter_records(self) -> Iterator[dict[str, object]]:
        if not self._log_path.exists():
            return
        with self._log_path.open("r", encoding="utf-8") as fh:
            for line in fh:
                line = line.strip()
                if line:
                    try:
                        yield json.loads(line)
                    except json.JSONDecodeError:
                        pass  # Skip malformed lines silently.

    @property
    def log_path(self) -> Path:
        """The filesystem path of the audit log file."""
        return self._log_path

    @property
    def session_id(self) -> str:
        """The session identifier stamped on every record."""
        return self._session_id

    @property
    def subject(self) -> str | None:
        return self._subject
