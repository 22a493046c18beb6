"""Audit trail package: append-only JSONL decision records."""
from __future__ import annotations

from iam_authz.audit.logger import AuditLogger

__all__ = ["AuditLogger"]
