"""Runs the runtime binary with the resolved memory limit.

stdout is inherited; stderr is piped so it can be scanned for OOM signatures,
then echoed back to the caller once the child exits.
"""

from __future__ import annotations

import logging
import os
import subprocess
import sys
from dataclasses import dataclass

from frc.errors import SpawnFailed
from frc.runtime import Runtime

logger = logging.getLogger(__name__)


@dataclass
class LaunchResult:
    """Outcome of one child run."""

    returncode: int
    stderr: str

    @property
    def success(self) -> bool:
        return self.returncode == 0


class RuntimeLauncher:
    """Builds and runs `<runtime> [memory flags] args...`."""

    def __init__(
        self,
        runtime: Runtime,
        args: list[str],
        *,
        memory: str | None = None,
        cwd: str | None = None,
    ) -> None:
        self.runtime = runtime
        self.args = list(args)
        self.memory = memory
        self.cwd = cwd

    def _build_command(self, extra_args: list[str]) -> list[str]:
        return [self.runtime.binary, *extra_args, *self.args]

    def _warn_unsupported_memory(self) -> None:
        print("⚠️  WARNING: Bun does not support manual memory configuration!")
        print("   Bun uses JavaScriptCore and manages memory automatically.")
        print("   Memory flag will be ignored.\n")

    def prepare(self) -> tuple[list[str], dict[str, str]]:
        """Return (argv, env) for the child without starting it."""
        if self.memory is not None and not self.runtime.supports_memory_config():
            self._warn_unsupported_memory()

        extra_args, env = self.runtime.inject_memory(self.memory, dict(os.environ))
        if self.memory is not None and self.runtime.supports_memory_config():
            print(f"Setting memory limit to {self.memory} MB for {self.runtime.display_name}")
        return self._build_command(extra_args), env

    def start(self) -> subprocess.Popen:
        """Spawn the child. Raises SpawnFailed if the binary cannot be started."""
        print(f"Running {self.runtime.value} with args: {self.args}")
        cmd, env = self.prepare()
        logger.debug("Starting: %s", " ".join(cmd))
        try:
            return subprocess.Popen(
                cmd,
                stdout=None,
                stderr=subprocess.PIPE,
                env=env,
                cwd=self.cwd,
            )
        except OSError as e:
            raise SpawnFailed(cmd[0], e) from e

    def run(self) -> LaunchResult:
        """Start the child, block until exit, echo captured stderr."""
        proc = self.start()
        _, raw_stderr = proc.communicate()
        stderr = raw_stderr.decode("utf-8", errors="replace") if raw_stderr else ""

        if stderr:
            sys.stderr.write(stderr)
            sys.stderr.flush()

        logger.info("%s exited with status %d", self.runtime.value, proc.returncode)
        return LaunchResult(returncode=proc.returncode, stderr=stderr)
