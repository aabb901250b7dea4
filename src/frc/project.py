"""Project detection — the store key is the root directory of the current project."""

from __future__ import annotations

import logging
from pathlib import Path

logger = logging.getLogger(__name__)

MARKERS = (
    "package.json",
    "deno.json",
    "deno.jsonc",
    "Cargo.toml",
    ".git",
    "pnpm-workspace.yaml",
    "lerna.json",
    "nx.json",
)


def detect_root(cwd: Path | None = None) -> Path:
    """Walk up from cwd, return the nearest directory containing a marker.

    Falls back to cwd itself when no marker exists up to the filesystem root.
    The result is always absolute with symlinks resolved.
    """
    start = (cwd if cwd is not None else Path.cwd()).resolve()
    p = start
    while True:
        for marker in MARKERS:
            if (p / marker).exists():
                logger.debug("Project root %s (marker: %s)", p, marker)
                return p
        if p == p.parent:
            break
        p = p.parent

    logger.debug("No project marker above %s, using it as project root", start)
    return start


def get_id(cwd: Path | None = None) -> str:
    return str(detect_root(cwd))


def get_name(project_id: str) -> str:
    """Last path segment for display, or "unknown"."""
    return Path(project_id).name or "unknown"
