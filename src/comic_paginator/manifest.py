"""
Run manifest recording and console logging.

Why this exists:
- Every conversion writes a JSON manifest with inputs/outputs, per-page
  decisions (split, blank, double page) and a timeline.
- Workers log concurrently, so every mutation goes through one lock.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import json
from pathlib import Path
import sys
import threading
from typing import Any, Dict, List, TextIO

from .utils import ensure_dir


VERBOSITY_LEVELS = {"quiet", "normal", "verbose"}


def _iso_now() -> str:
    """Return an ISO-8601 timestamp in UTC."""

    return datetime.now(timezone.utc).isoformat()


@dataclass
class ManifestRecorder:
    """
    Collect logs and actions, then write a single manifest JSON file.

    `log` and `add_action` are safe to call from worker threads.
    """

    tool_name: str
    tool_version: str
    command: str
    options: Dict[str, Any]
    inputs: Dict[str, Any]
    outputs: Dict[str, Any]
    dry_run: bool
    verbosity: str = "normal"
    console_stream: TextIO = field(default_factory=lambda: sys.stderr)
    started_at: str = field(default_factory=_iso_now)
    logs: List[Dict[str, Any]] = field(default_factory=list)
    actions: List[Dict[str, Any]] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def _should_print(self, level: str) -> bool:
        if self.verbosity == "quiet":
            return level == "error"
        if self.verbosity == "verbose":
            return True
        return level in {"info", "warning", "error"}

    def log(self, message: str, level: str = "info") -> None:
        """Record a log message and also print it to the console."""

        entry = {"timestamp": _iso_now(), "level": level, "message": message}
        with self._lock:
            self.logs.append(entry)
            if self._should_print(level):
                rendered = f"[{level}] {message}" if self.verbosity == "verbose" else message
                print(rendered, file=self.console_stream)

    def add_action(self, action: str, status: str, **details: Any) -> None:
        """
        Add an action record.

        Action types: page, storage, package.
        """

        entry: Dict[str, Any] = {
            "timestamp": _iso_now(),
            "action": action,
            "status": status,
        }
        entry.update(details)
        with self._lock:
            self.actions.append(entry)

    def action_counts(self) -> Dict[str, int]:
        """Count actions by status (written, dropped, dry-run, etc.)."""

        counts: Dict[str, int] = {}
        with self._lock:
            for action in self.actions:
                status = action.get("status", "unknown")
                counts[status] = counts.get(status, 0) + 1
        return counts

    def build_manifest(self, summary: Dict[str, Any]) -> Dict[str, Any]:
        """Assemble the final manifest structure."""

        counts = self.action_counts()
        with self._lock:
            actions = list(self.actions)
            logs = list(self.logs)
        return {
            "tool": self.tool_name,
            "version": self.tool_version,
            "command": self.command,
            "started_at": self.started_at,
            "ended_at": _iso_now(),
            "options": self.options,
            "inputs": self.inputs,
            "outputs": self.outputs,
            "summary": summary,
            "action_counts": counts,
            "actions": actions,
            "logs": logs,
        }

    def write_manifest(self, path: Path, summary: Dict[str, Any]) -> None:
        """
        Write the manifest JSON, unless this is a dry-run.

        A dry-run must not touch the filesystem, the manifest included.
        """

        if self.dry_run:
            self.log(f"[dry-run] Would write manifest to {path}")
            return

        ensure_dir(path.parent, dry_run=False)
        manifest = self.build_manifest(summary)
        with path.open("w", encoding="utf-8") as handle:
            json.dump(manifest, handle, indent=2, ensure_ascii=True, default=str)
