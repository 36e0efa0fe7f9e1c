"""Exception hierarchy for pkghost.

Every failure a command can report derives from :class:`PkgHostError`, so the
CLI can turn any of them into a one-line diagnostic and a nonzero exit.

Hierarchy
---------
::

    PkgHostError
    ├── ValidationError        malformed subject / predicate / path / arguments
    ├── PermissionDenied       check() resolved Deny
    ├── PartialBatchFailure    some items of a batch command failed
    ├── UnknownCommandError    registry lookup miss
    ├── AuditError             audit record could not be written
    └── StoreError             rule store I/O or state failure
        ├── FormatError        malformed persisted rule line
        └── StoreBusyError     lock not acquired within the timeout
"""
from __future__ import annotations


class PkgHostError(Exception):
    """Base class for all pkghost failures."""


class ValidationError(PkgHostError, ValueError):
    """Raised when a command argument or rule component is malformed."""


class PermissionDenied(PkgHostError):
    """Raised when an access check resolves to Deny.

    Attributes
    ----------
    letter:
        The first permission letter that was denied.
    subject:
        The identity that was checked.
    path:
        The resource path the check was made against.
    """

    def __init__(self, letter: str, subject: str, path: str) -> None:
        self.letter = letter
        self.subject = subject
        self.path = path
        super().__init__(
            f"Permission denied: '{subject}' lacks '{letter}' on '{path}'"
        )


class AuditError(PkgHostError):
    """Raised when an audit record cannot be appended to the log."""


class StoreError(PkgHostError):
    """Raised on I/O, lock, or state failures of the rule store."""


class FormatError(StoreError):
    """Raised when the persisted rule file contains a malformed line.

    Attributes
    ----------
    path:
        The rule file being parsed, if known.
    line_number:
        1-based line number of the offending line, if known.
    """

    def __init__(
        self,
        message: str,
        path: str | None = None,
        line_number: int | None = None,
    ) -> None:
        self.path = path
        self.line_number = line_number
        location = ""
        if path is not None:
            location = f"[{path}:{line_number}] " if line_number else f"[{path}] "
        super().__init__(f"{location}{message}")


class StoreBusyError(StoreError):
    """Raised when the rule store lock cannot be taken in time.

    The operator is expected to retry the command.
    """

    def __init__(self, lock_path: str, timeout: float) -> None:
        self.lock_path = lock_path
        self.timeout = timeout
        super().__init__(
            f"Rule store is busy: could not lock {lock_path} within {timeout:g}s, retry later"
        )


class PartialBatchFailure(PkgHostError):
    """Raised after a batch command when one or more items failed.

    Attributes
    ----------
    failed:
        Number of items that failed.
    total:
        Number of items attempted.
    """

    def __init__(self, failed: int, total: int) -> None:
        self.failed = failed
        self.total = total
        super().__init__(f"{failed} of {total} item(s) failed")


class UnknownCommandError(PkgHostError):
    """Raised when no command is registered under the requested name."""

    def __init__(self, name: tuple[str, ...]) -> None:
        self.name = name
        super().__init__(f"Unknown command: {' '.join(name)!r}")
