"""Error types surfaced by the frc CLI."""

from __future__ import annotations


class FrcError(Exception):
    """Base class for errors reported to the user (exit status 1)."""


class UnknownRuntime(FrcError):
    def __init__(self, token: str) -> None:
        super().__init__(f"Unknown runtime: {token}")
        self.token = token


class MemoryExceedsSystem(FrcError):
    def __init__(self, requested_mb: int, system_gb: int) -> None:
        super().__init__(
            f"Memory limit ({requested_mb} MB) exceeds system memory ({system_gb} GB)"
        )
        self.requested_mb = requested_mb
        self.system_gb = system_gb


class ConfigDirUnavailable(FrcError):
    def __init__(self, reason: str = "") -> None:
        msg = "Cannot find config directory"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg)


class SpawnFailed(FrcError):
    def __init__(self, binary: str, cause: OSError) -> None:
        super().__init__(f"Failed to start '{binary}': {cause}")
        self.binary = binary


class ChildNonZeroExit(FrcError):
    def __init__(self, returncode: int) -> None:
        super().__init__(f"Command failed: exit status {returncode}")
        self.returncode = returncode


class DetectedOOM(FrcError):
    """The child ran out of memory. The store has already been updated."""

    def __init__(self, old_memory: str | None = None, new_memory: str | None = None) -> None:
        super().__init__("Out of Memory - Config updated, please retry")
        self.old_memory = old_memory
        self.new_memory = new_memory
