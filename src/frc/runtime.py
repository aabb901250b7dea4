"""Supported JS/TS runtimes and their memory behaviour."""

from __future__ import annotations

import enum
import logging

from frc.errors import MemoryExceedsSystem, UnknownRuntime

logger = logging.getLogger(__name__)

# Node-ecosystem wrappers run on node and honour NODE_OPTIONS
_ALIASES = {
    "node": "node",
    "deno": "deno",
    "bun": "bun",
    "npm": "node",
    "npx": "node",
    "pnpm": "node",
    "yarn": "node",
}

OOM_SIGNATURES = (
    "JavaScript heap out of memory",
    "FATAL ERROR: Reached heap limit",
    "Allocation failed",
    "heap out of memory",
)

# (min system GB, default MB, guidance), highest tier first
_TIERS = (
    (64, 16384, "For 64GB+: 16384-24576 MB for large projects"),
    (32, 8192, "For 32GB: 8192-12288 MB for large projects"),
    (16, 4096, "For 16GB: 4096-6144 MB for large projects"),
    (0, 2048, "For <16GB: 2048-4096 MB"),
)

HIGH_USAGE_PERCENT = 75
LOW_USAGE_PERCENT = 10


def _tier(system_gb: int) -> tuple[int, int, str]:
    for tier in _TIERS:
        if system_gb >= tier[0]:
            return tier
    return _TIERS[-1]


class Runtime(enum.Enum):
    NODE = "node"
    DENO = "deno"
    BUN = "bun"

    @classmethod
    def resolve(cls, command: str) -> Runtime:
        """Map a command token (runtime or wrapper like npm) to its runtime."""
        name = _ALIASES.get(command.lower())
        if name is None:
            raise UnknownRuntime(command)
        return cls(name)

    @property
    def binary(self) -> str:
        return self.value

    @property
    def display_name(self) -> str:
        return {"node": "Node.js", "deno": "Deno", "bun": "Bun"}[self.value]

    def supports_memory_config(self) -> bool:
        # Bun (JavaScriptCore) sizes its heap on its own
        return self is not Runtime.BUN

    def memory_flag(self, memory: str) -> str:
        return f"--max-old-space-size={memory}"

    def inject_memory(
        self, memory: str | None, env: dict[str, str]
    ) -> tuple[list[str], dict[str, str]]:
        """Return (extra runtime args, env) carrying the memory limit.

        Node gets it appended to NODE_OPTIONS, Deno through --v8-flags.
        """
        if memory is None or not self.supports_memory_config():
            return [], env

        flag = self.memory_flag(memory)
        if self is Runtime.NODE:
            env = dict(env)
            current = env.get("NODE_OPTIONS", "")
            env["NODE_OPTIONS"] = f"{current} {flag}" if current else flag
            return [], env
        return ["--v8-flags", flag], env

    @staticmethod
    def default_memory(system_gb: int) -> int:
        return _tier(system_gb)[1]

    def recommend_memory(self, system_gb: int) -> str:
        if not self.supports_memory_config():
            return "Bun manages memory automatically (GC at ~80% system memory)"
        return (
            f"{_tier(system_gb)[2]}\n"
            "Rule: Allocate 20-40% of system memory for development"
        )

    def validate_memory(self, memory_mb: int, system_gb: int) -> str:
        """Return a warning/info line ("" if none); raise if over system memory."""
        if not self.supports_memory_config():
            return ""

        system_mb = system_gb * 1024
        if memory_mb > system_mb:
            raise MemoryExceedsSystem(memory_mb, system_gb)

        percentage = memory_mb / system_mb * 100 if system_mb else 100.0
        if percentage > HIGH_USAGE_PERCENT:
            return (
                f"⚠️  Warning: {int(percentage)}% of system memory "
                "(recommended: 20-40% dev, 50-75% prod)"
            )
        if percentage < LOW_USAGE_PERCENT:
            return (
                f"ℹ️  Info: Only {int(percentage)}% of system memory, "
                "can increase for better performance"
            )
        return ""


def check_oom(stderr: str) -> bool:
    """True if stderr carries one of the known V8 out-of-memory messages."""
    lowered = stderr.lower()
    for pattern in OOM_SIGNATURES:
        if pattern.lower() in lowered:
            logger.debug("OOM pattern detected: %r", pattern)
            return True
    return False
