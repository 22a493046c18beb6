"""Decision audit trail written as JSON Lines.

One line per authorization decision (or any other event handed to
:meth:`AuditLogger.log`), each stamped with a UTC timestamp and the
writer's session id.  :meth:`AuditLogger.record_decision` matches the
decision-sink signature of
:class:`~iam_authz.engine.decision_engine.DecisionEngine`::

    audit = AuditLogger(Path("authz_audit.jsonl"))
    engine = DecisionEngine(decision_sink=audit.record_decision)

A single ``threading.Lock`` guards the file, so one instance may be shared
by every thread that calls the engine.
"""
from __future__ import annotations

import json
import logging
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from iam_authz.evaluation.decision import DecisionRecord

logger = logging.getLogger(__name__)

_DECISION_EVENT = "authorization_decision"


class AuditLogger:
    """JSONL sink for :class:`DecisionRecord` objects.

    Parameters
    ----------
    log_path:
        Target ``.jsonl`` file; missing parent directories are created on
        the first append.
    session_id:
        Value stamped on every line.  Defaults to a fresh UUID4.
    """

    def __init__(self, log_path: Path, session_id: str | None = None) -> None:
        self._path = Path(log_path)
        self._session = session_id or str(uuid.uuid4())
        self._lock = threading.Lock()

    @property
    def log_path(self) -> Path:
        return self._path

    @property
    def session_id(self) -> str:
        return self._session

    # ------------------------------------------------------------------
    # Appending
    # ------------------------------------------------------------------

    def record_decision(self, record: DecisionRecord) -> None:
        """Append one authorization decision."""
        self.log(record.to_dict())

    def log(self, entry: dict[str, object]) -> None:
        """Append an arbitrary event.

        ``timestamp`` and ``session_id`` always come from the logger; values
        for those keys in *entry* are replaced.
        """
        line = json.dumps(
            {
                **entry,
                "timestamp": datetime.now(tz=timezone.utc).isoformat(),
                "session_id": self._session,
            },
            default=str,
        )
        with self._lock:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as fh:
                fh.write(line + "\n")

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def read_all(self) -> list[dict[str, object]]:
        """All parseable lines, oldest first; ``[]`` when no file exists."""
        return list(self._parsed_lines())

    def decisions(
        self,
        *,
        allowed: bool | None = None,
        identity_id: str | None = None,
    ) -> list[dict[str, object]]:
        """Decision records, optionally narrowed by outcome or identity."""
        selected: list[dict[str, object]] = []
        for entry in self._parsed_lines():
            if entry.get("event") != _DECISION_EVENT:
                continue
            if allowed is not None and entry.get("allowed") is not allowed:
                continue
            if identity_id is not None and entry.get("target_identity_id") != identity_id:
                continue
            selected.append(entry)
        return selected

    def _parsed_lines(self) -> Iterator[dict[str, object]]:
        if not self._path.exists():
            return
        with self._lock:
            raw_lines = self._path.read_text(encoding="utf-8").splitlines()
        for number, raw in enumerate(raw_lines, start=1):
            if not raw.strip():
                continue
            try:
                yield json.loads(raw)
            except json.JSONDecodeError:
                logger.warning("Skipping malformed audit line %d in %s", number, self._path)
