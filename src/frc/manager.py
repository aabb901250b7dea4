"""Memory resolution, launching and OOM bookkeeping for one invocation.

Flow of `run()`:
1. Resolve the memory limit (explicit flag > saved project config > none)
2. Save an explicit limit for the current project
3. Launch the runtime, wait for it
4. On an OOM signature in stderr, escalate the saved limit and report failure
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from pathlib import Path

import psutil

from frc import project
from frc.config import FrcConfig
from frc.errors import ChildNonZeroExit, DetectedOOM, MemoryExceedsSystem
from frc.launcher import LaunchResult, RuntimeLauncher
from frc.runtime import Runtime, check_oom
from frc.store import ProjectStore, parse_megabytes

logger = logging.getLogger(__name__)

_FALLBACK_SYSTEM_GB = 16


def detect_system_memory_gb() -> int:
    """Physical memory in whole GB, 16 if it cannot be read."""
    try:
        total = psutil.virtual_memory().total
    except (OSError, RuntimeError) as e:
        logger.warning("Could not read system memory (%s), assuming %d GB", e, _FALLBACK_SYSTEM_GB)
        return _FALLBACK_SYSTEM_GB
    return total // (1024**3)


def format_timestamp(ts: int) -> str:
    try:
        return datetime.fromtimestamp(ts).strftime("%Y-%m-%d %H:%M:%S")
    except (OverflowError, OSError, ValueError):
        return "unknown"


class Manager:
    """Owns the project store for the duration of one command."""

    def __init__(
        self,
        config: FrcConfig,
        store: ProjectStore | None = None,
        cwd: Path | None = None,
    ) -> None:
        self.config = config
        self.store = store if store is not None else ProjectStore.load(config.store_path)
        self.cwd = cwd

    def system_memory_gb(self) -> int:
        if self.config.system_memory_gb is not None:
            return self.config.system_memory_gb
        return detect_system_memory_gb()

    def project_id(self) -> str:
        return project.get_id(self.cwd)

    # ── Memory resolution ────────────────────────────────────

    def resolve_memory(
        self,
        runtime: Runtime,
        explicit_memory: str | None,
        system_gb: int,
    ) -> str | None:
        """Pick the memory limit handed to the child, or None for the runtime default.

        An explicit value is used verbatim; it is only validated when it parses
        as a number. Without one, a saved value for the same runtime is reused.
        Otherwise a recommendation is printed but nothing is applied.
        """
        if explicit_memory is not None:
            memory_mb = parse_megabytes(explicit_memory)
            if memory_mb is not None:
                try:
                    warning = runtime.validate_memory(memory_mb, system_gb)
                except MemoryExceedsSystem:
                    print(f"\n{runtime.recommend_memory(system_gb)}", file=sys.stderr)
                    raise
                if warning:
                    print(warning)
            else:
                logger.debug("Memory %r is not numeric, skipping validation", explicit_memory)
            return explicit_memory

        project_id = self.project_id()
        record = self.store.get_project(project_id)
        if record is not None and record.runtime == runtime.value:
            print(f"📌 Using saved config for '{project.get_name(project_id)}': {record.memory} MB")
            return record.memory

        if runtime.supports_memory_config():
            recommended = Runtime.default_memory(system_gb)
            print(f"💡 No saved config. Recommended: {recommended} MB")
            print(f"   Run with -m {recommended} to use and save this value")
        return None

    def save_project_config(self, runtime: Runtime, memory: str) -> None:
        project_id = self.project_id()
        self.store.save_project(project_id, runtime.value, memory)
        self.store.save()
        print(f"💾 Saved config for '{project.get_name(project_id)}': {runtime.value} {memory} MB")

    # ── Execution ────────────────────────────────────────────

    def run(
        self,
        runtime: Runtime,
        args: list[str],
        memory: str | None = None,
        save: bool = False,
    ) -> LaunchResult:
        """Run the runtime with the resolved memory limit.

        Raises DetectedOOM (after escalating the saved limit) or
        ChildNonZeroExit when the child fails.
        """
        system_gb = self.system_memory_gb()
        final_memory = self.resolve_memory(runtime, memory, system_gb)

        if save and memory is not None:
            self.save_project_config(runtime, memory)

        launcher = RuntimeLauncher(
            runtime, args, memory=final_memory, cwd=str(self.cwd) if self.cwd else None
        )
        result = launcher.run()

        if check_oom(result.stderr):
            raise self.handle_oom()

        if not result.success:
            raise ChildNonZeroExit(result.returncode)
        return result

    def handle_oom(self) -> DetectedOOM:
        """Escalate the current project's saved memory; return the error to raise."""
        project_id = self.project_id()
        change = self.store.increase_project_memory(project_id)
        if change is None:
            logger.info("OOM detected but no numeric saved config for %s", project_id)
            return DetectedOOM()

        self.store.save()
        old, new = change
        print("\n🔴 Out of Memory Detected!")
        print(f"📈 Auto-increased: {old} MB → {new} MB")
        print(f"💾 Saved for project '{project.get_name(project_id)}'")
        print(f"\n💡 Run the same command again to use {new} MB")
        return DetectedOOM(old, new)

    # ── Informational commands ───────────────────────────────

    def show_project(self) -> None:
        project_id = self.project_id()
        print(f"📂 Project: {project.get_name(project_id)}")
        print(f"   Path: {project_id}")

        record = self.store.get_project(project_id)
        if record is None:
            print("\n❌ No saved configuration")
            print("   Run with -m <memory> to save a config")
            return

        print("\n⚙️  Saved Configuration:")
        print(f"   Runtime: {record.runtime}")
        print(f"   Memory: {record.memory} MB")
        print(f"   Last used: {format_timestamp(record.last_used)}")

    def list_projects(self) -> None:
        projects = self.store.list_projects()
        if not projects:
            print("No saved project configurations")
            return

        print("📚 Saved Project Configurations:\n")
        for path, record in projects:
            print(f"  📂 {project.get_name(path)}")
            print(f"     Path: {path}")
            print(
                f"     Runtime: {record.runtime} | Memory: {record.memory} MB"
                f" | Last used: {format_timestamp(record.last_used)}"
            )
            print()

    def forget_project(self, path: str | None = None) -> bool:
        project_id = path if path is not None else self.project_id()
        name = project.get_name(project_id)

        if self.store.remove_project(project_id):
            self.store.save()
            print(f"✅ Removed config for '{name}'")
            return True
        print(f"❌ No config found for '{name}'")
        return False

    def cleanup(self, days: int) -> int:
        removed = self.store.cleanup_old_projects(days)
        self.store.save()
        print(f"🧹 Cleaned up {removed} config(s) older than {days} days")
        return removed

    def show_recommendations(self, runtime: Runtime) -> None:
        system_gb = self.system_memory_gb()

        print(f"\n📊 System: {system_gb} GB")
        print(f"\n💡 Recommendations for {runtime.value}:")
        print(f"   {runtime.recommend_memory(system_gb)}")

        if runtime.supports_memory_config():
            recommended = Runtime.default_memory(system_gb)
            print("\n📝 Examples:")
            print(f"   frc -m {recommended} {runtime.value} script.js")
