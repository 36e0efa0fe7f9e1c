"""Per-item results for commands that act on several targets.

A batch command attempts every target, records one :class:`ItemResult` per
target, and only afterwards decides the overall outcome.  A failing target
never stops the ones after it.

Example
-------
::

    report = BatchReport()
    for line in lines:
        report.attempt(line, lambda: acl.add_rule(Rule.from_line(line)))
    report.raise_for_failures()
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from pkghost.errors import PartialBatchFailure, PkgHostError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ItemResult:
    """Outcome for a single batch target."""

    target: str
    ok: bool
    message: str = ""

    @classmethod
    def success(cls, target: str, message: str = "") -> ItemResult:
        return cls(target=target, ok=True, message=message)

    @classmethod
    def failure(cls, target: str, message: str) -> ItemResult:
        return cls(target=target, ok=False, message=message)


@dataclass
class BatchReport:
    """Ordered collection of :class:`ItemResult` values."""

    results: list[ItemResult] = field(default_factory=list)

    def record(self, result: ItemResult) -> ItemResult:
        """Append ``result`` and return it."""
        self.results.append(result)
        if not result.ok:
            logger.warning("Batch item %r failed: %s", result.target, result.message)
        return result

    def attempt(self, target: str, action: Callable[[], object]) -> ItemResult:
        """Run ``action`` for ``target`` and record its outcome.

        Only :class:`~pkghost.errors.PkgHostError` failures are recorded as
        item failures; anything else is a bug and propagates.
        """
        try:
            outcome = action()
        except PkgHostError as exc:
            return self.record(ItemResult.failure(target, str(exc)))
        message = "" if outcome is None or isinstance(outcome, bool) else str(outcome)
        if outcome is False:
            message = "unchanged"
        return self.record(ItemResult.success(target, message))

    @property
    def succeeded(self) -> list[ItemResult]:
        return [r for r in self.results if r.ok]

    @property
    def failed(self) -> list[ItemResult]:
        return [r for r in self.results if not r.ok]

    @property
    def ok(self) -> bool:
        """True when every recorded item succeeded."""
        return not self.failed

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1

    def raise_for_failures(self) -> None:
        """Raise :class:`~pkghost.errors.PartialBatchFailure` if any item failed."""
        if not self.ok:
            raise PartialBatchFailure(len(self.failed), len(self.results))

    def summary(self) -> dict[str, object]:
        return {
            "total": len(self.results),
            "succeeded": len(self.succeeded),
            "failed": len(self.failed),
        }
