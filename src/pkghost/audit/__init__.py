"""Audit trail package for pkghost.

Provides the append-only JSONL log of access-control mutations and denials.
"""
from __future__ import annotations

from pkghost.audit.logger import AuditLogger

__all__ = ["AuditLogger"]
