"""Per-project memory settings persisted as a single JSON file.

Layout:
    {"projects": {"<abs path>": {"runtime": "node", "memory": "4096", "last_used": 1700000000}}}

The file is read once per invocation and rewritten whole on save. There is
no locking: two concurrent invocations on the same project race and the last
save wins.
"""

from __future__ import annotations

import json
import logging
import sys
import time
from dataclasses import asdict, dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


def _timestamp() -> int:
    return int(time.time())


@dataclass
class ProjectRecord:
    """Saved settings for one project."""

    runtime: str
    memory: str
    last_used: int

    @classmethod
    def from_dict(cls, data: dict) -> ProjectRecord:
        """Strict parse; raises ValueError on anything but the expected shape."""
        if not isinstance(data, dict):
            raise ValueError(f"project entry must be an object, got {type(data).__name__}")
        runtime = data.get("runtime")
        memory = data.get("memory")
        last_used = data.get("last_used")
        if not isinstance(runtime, str) or not isinstance(memory, str):
            raise ValueError("runtime and memory must be strings")
        if isinstance(last_used, bool) or not isinstance(last_used, int) or last_used < 0:
            raise ValueError("last_used must be a non-negative integer")
        return cls(runtime=runtime, memory=memory, last_used=last_used)


def parse_megabytes(value: str) -> int | None:
    """Unsigned decimal megabytes, or None for anything else ("4g", "-1", " 12")."""
    if value.isascii() and value.isdigit():
        return int(value)
    return None


def increase_memory(old_mb: int) -> int:
    """Next memory limit after an OOM: +50% or +2 GB, whichever is larger."""
    return max(int(old_mb * 1.5), old_mb + 2048)


class ProjectStore:
    """Project id → ProjectRecord, backed by a JSON file."""

    def __init__(self, path: Path, projects: dict[str, ProjectRecord] | None = None) -> None:
        self.path = path
        self.projects: dict[str, ProjectRecord] = projects if projects is not None else {}

    # ── Persistence ──────────────────────────────────────────

    @classmethod
    def load(cls, path: Path) -> ProjectStore:
        """Read the store; a missing file is empty, an unreadable one is discarded."""
        if not path.exists():
            logger.debug("No store at %s, starting empty", path)
            return cls(path)

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            raw = data["projects"]
            if not isinstance(raw, dict):
                raise ValueError("'projects' must be an object")
            projects = {key: ProjectRecord.from_dict(value) for key, value in raw.items()}
        except (ValueError, KeyError, TypeError) as e:
            # json.JSONDecodeError and UnicodeDecodeError are ValueErrors
            logger.warning("Discarding incompatible store %s: %s", path, e)
            print("⚠️  Old config format detected, recreating...", file=sys.stderr)
            path.unlink()
            return cls(path)

        logger.debug("Loaded %d project(s) from %s", len(projects), path)
        return cls(path, projects)

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = {"projects": {key: asdict(rec) for key, rec in self.projects.items()}}
        self.path.write_text(
            json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8"
        )
        logger.debug("Saved %d project(s) to %s", len(self.projects), self.path)

    # ── Records ──────────────────────────────────────────────

    def get_project(self, project_id: str) -> ProjectRecord | None:
        return self.projects.get(project_id)

    def save_project(self, project_id: str, runtime: str, memory: str) -> ProjectRecord:
        """Insert or replace the record for project_id, stamped now."""
        record = ProjectRecord(runtime=runtime, memory=memory, last_used=_timestamp())
        self.projects[project_id] = record
        return record

    def remove_project(self, project_id: str) -> bool:
        return self.projects.pop(project_id, None) is not None

    def list_projects(self) -> list[tuple[str, ProjectRecord]]:
        """All records, most recently used first."""
        return sorted(self.projects.items(), key=lambda item: item[1].last_used, reverse=True)

    def cleanup_old_projects(self, days: int) -> int:
        """Drop records last used at or before now - days. Returns how many."""
        cutoff = _timestamp() - days * SECONDS_PER_DAY
        stale = [key for key, rec in self.projects.items() if rec.last_used <= cutoff]
        for key in stale:
            del self.projects[key]
        logger.debug("Cleanup cutoff %d removed %d record(s)", cutoff, len(stale))
        return len(stale)

    def increase_project_memory(self, project_id: str) -> tuple[str, str] | None:
        """Escalate a project's memory after an OOM.

        Returns (old, new) or None if there is no record or its memory is not
        a plain integer.
        """
        record = self.projects.get(project_id)
        if record is None:
            return None
        current_mb = parse_megabytes(record.memory)
        if current_mb is None:
            logger.info("Saved memory %r for %s is not numeric, not escalating",
                        record.memory, project_id)
            return None

        old = record.memory
        record.memory = str(increase_memory(current_mb))
        record.last_used = _timestamp()
        return old, record.memory
