"""Lock-protected persistence of the rule set.

The rule file holds one rule per line (see :mod:`pkghost.acl.rules`).  Access
is coordinated between independent processes with ``fcntl.flock`` on a
sidecar ``<rule file>.lock`` file:

- a read-only :meth:`RuleStore.load` takes a shared lock for the duration of
  the read only;
- ``load(for_update=True)`` takes an exclusive lock and keeps it until
  :meth:`RuleStore.save` or :meth:`RuleStore.release`, so a whole
  load-mutate-save sequence is serialised against every other writer.

:meth:`RuleStore.save` writes a sorted copy to a temporary file in the same
directory and swaps it in with ``os.replace``; readers see either the old or
the new rule set, never a mixture.

Example
-------
::

    store = RuleStore(Path("/var/lib/pkghost/acl"), lock_timeout=5)
    store.load(for_update=True)
    store.add(Rule.build("allow", "alice", "rw", "/repo/core"))
    store.save()
"""
from __future__ import annotations

import fcntl
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import IO

from pkghost.acl.rules import Rule
from pkghost.errors import FormatError, StoreBusyError, StoreError

logger = logging.getLogger(__name__)

_LOCK_SUFFIX: str = ".lock"


class RuleStore:
    """Durable rule set backed by a plain-text file.

    Parameters
    ----------
    path:
        Location of the rule file.  A missing file is an empty rule set.
    lock_timeout:
        Seconds to wait for the lock before raising
        :class:`~pkghost.errors.StoreBusyError`.
    poll_interval:
        Seconds between lock attempts while waiting.
    """

    def __init__(
        self,
        path: Path | str,
        lock_timeout: float = 10.0,
        poll_interval: float = 0.05,
    ) -> None:
        self._path = Path(path)
        self._lock_path = self._path.with_name(self._path.name + _LOCK_SUFFIX)
        self._lock_timeout = lock_timeout
        self._poll_interval = poll_interval
        self._rules: set[Rule] | None = None
        self._lock_fh: IO[str] | None = None
        self._for_update = False
        self._dirty = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def load(self, for_update: bool = False) -> None:
        """Read the rule file into memory.

        Parameters
        ----------
        for_update:
            Take the exclusive lock and hold it until :meth:`save` or
            :meth:`release`.  Otherwise a shared lock is held only while
            reading.

        Raises
        ------
        StoreError
            If the store was already loaded or the file cannot be read.
        FormatError
            If a line of the rule file is malformed.
        StoreBusyError
            If the lock was not acquired within the timeout.
        """
        if self._rules is not None:
            raise StoreError(f"Rule store {self._path} is already loaded.")

        self._acquire(fcntl.LOCK_EX if for_update else fcntl.LOCK_SH)
        try:
            rules = self._read()
        except BaseException:
            self.release()
            raise

        self._rules = rules
        self._for_update = for_update
        self._dirty = False
        if not for_update:
            self.release()
        logger.info(
            "Loaded %d rule(s) from %s (for_update=%s)", len(rules), self._path, for_update
        )

    def save(self) -> None:
        """Atomically persist the in-memory rule set and release the lock.

        Raises
        ------
        StoreError
            If the store was not loaded for update, the lock is no longer
            held, or writing the file fails.
        """
        rules = self._require_loaded()
        if not self._for_update or self._lock_fh is None:
            raise StoreError(
                f"Rule store {self._path} was not loaded for update; cannot save."
            )
        try:
            self._write(rules)
        finally:
            self.release()
        self._dirty = False
        self._for_update = False
        logger.info("Saved %d rule(s) to %s", len(rules), self._path)

    def release(self) -> None:
        """Drop the file lock, if held.  Unsaved changes stay in memory only."""
        if self._lock_fh is None:
            return
        try:
            fcntl.flock(self._lock_fh, fcntl.LOCK_UN)
        finally:
            self._lock_fh.close()
            self._lock_fh = None

    def __enter__(self) -> RuleStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()

    # ------------------------------------------------------------------
    # In-memory access
    # ------------------------------------------------------------------

    @property
    def rules(self) -> frozenset[Rule]:
        """Snapshot of the loaded rule set."""
        return frozenset(self._require_loaded())

    def add(self, rule: Rule) -> bool:
        """Insert ``rule``; return True if the set changed."""
        rules = self._require_loaded()
        if rule in rules:
            return False
        rules.add(rule)
        self._dirty = True
        return True

    def discard(self, rule: Rule) -> bool:
        """Remove ``rule`` if present; return True if the set changed."""
        rules = self._require_loaded()
        if rule not in rules:
            return False
        rules.remove(rule)
        self._dirty = True
        return True

    @property
    def loaded(self) -> bool:
        return self._rules is not None

    @property
    def dirty(self) -> bool:
        """True when there are mutations not yet written by :meth:`save`."""
        return self._dirty

    @property
    def locked(self) -> bool:
        return self._lock_fh is not None

    @property
    def writable(self) -> bool:
        """True while the store is loaded for update and the lock is held."""
        return self._for_update and self._lock_fh is not None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def lock_path(self) -> Path:
        return self._lock_path

    def exists(self) -> bool:
        """Return True if the rule file is present on disk."""
        return self._path.exists()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_loaded(self) -> set[Rule]:
        if self._rules is None:
            raise StoreError(f"Rule store {self._path} has not been loaded.")
        return self._rules

    def _acquire(self, mode: int) -> None:
        """Take ``mode`` on the sidecar lock file, polling until the deadline."""
        try:
            self._lock_path.parent.mkdir(parents=True, exist_ok=True)
            lock_fh = self._lock_path.open("a", encoding="utf-8")
        except OSError as exc:
            raise StoreError(f"Cannot open lock file {self._lock_path}: {exc}") from exc

        deadline = time.monotonic() + self._lock_timeout
        while True:
            try:
                fcntl.flock(lock_fh, mode | fcntl.LOCK_NB)
                break
            except BlockingIOError:
                if time.monotonic() >= deadline:
                    lock_fh.close()
                    logger.warning("Timed out waiting for lock %s", self._lock_path)
                    raise StoreBusyError(str(self._lock_path), self._lock_timeout) from None
                time.sleep(self._poll_interval)
            except OSError as exc:
                lock_fh.close()
                raise StoreError(f"Cannot lock {self._lock_path}: {exc}") from exc
        self._lock_fh = lock_fh

    def _read(self) -> set[Rule]:
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.info("Rule file %s does not exist; starting empty", self._path)
            return set()
        except UnicodeDecodeError as exc:
            raise FormatError(f"Rule file is not valid UTF-8: {exc}", str(self._path)) from exc
        except OSError as exc:
            raise StoreError(f"Cannot read rule file {self._path}: {exc}") from exc

        rules: set[Rule] = set()
        for line_number, raw_line in enumerate(text.splitlines(), start=1):
            line = raw_line.rstrip()
            if not line or line.lstrip().startswith("#"):
                continue
            rules.add(Rule.from_line(line, str(self._path), line_number))
        return rules

    def _write(self, rules: set[Rule]) -> None:
        content = "".join(
            rule.to_line() + "\n" for rule in sorted(rules, key=Rule.sort_key)
        )
        directory = self._path.parent
        tmp_name: str | None = None
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self._path.name}.", suffix=".tmp", dir=directory
            )
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(content)
                fh.flush()
                os.fsync(fh.fileno())
            if self._path.exists():
                os.chmod(tmp_name, self._path.stat().st_mode & 0o7777)
            else:
                os.chmod(tmp_name, 0o644)
            os.replace(tmp_name, self._path)
            tmp_name = None
        except OSError as exc:
            raise StoreError(f"Cannot write rule file {self._path}: {exc}") from exc
        finally:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
