"""Tests for memory resolution, OOM recovery and the informational commands."""

from __future__ import annotations

import pytest
from pathlib import Path
from unittest.mock import MagicMock, patch

from frc.config import FrcConfig
from frc.errors import ChildNonZeroExit, DetectedOOM, MemoryExceedsSystem
from frc.launcher import LaunchResult
from frc.manager import Manager, detect_system_memory_gb, format_timestamp
from frc.runtime import Runtime
from frc.store import ProjectRecord, ProjectStore

OOM_STDERR = (
    "<--- Last few GCs --->\n"
    "FATAL ERROR: Reached heap limit Allocation failed - JavaScript heap out of memory\n"
)


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    d = tmp_path.resolve() / "my-app"
    d.mkdir()
    (d / "package.json").write_text("{}")
    return d


@pytest.fixture
def config(tmp_path: Path) -> FrcConfig:
    return FrcConfig(config_dir=tmp_path / "frc", system_memory_gb=16)


@pytest.fixture
def manager(config: FrcConfig, project_dir: Path) -> Manager:
    return Manager(config, cwd=project_dir)


def fake_run(returncode: int = 0, stderr: str = ""):
    return patch(
        "frc.manager.RuntimeLauncher.run",
        return_value=LaunchResult(returncode=returncode, stderr=stderr),
    )


class TestResolveMemory:
    def test_explicit_used_verbatim(self, manager: Manager, capsys):
        assert manager.resolve_memory(Runtime.NODE, "4096", 16) == "4096"
        assert capsys.readouterr().out == ""

    def test_explicit_high_usage_warns(self, manager: Manager, capsys):
        assert manager.resolve_memory(Runtime.NODE, "14336", 16) == "14336"
        assert "Warning" in capsys.readouterr().out

    def test_explicit_low_usage_info(self, manager: Manager, capsys):
        assert manager.resolve_memory(Runtime.DENO, "512", 16) == "512"
        assert "Info" in capsys.readouterr().out

    def test_explicit_exceeding_system_fails(self, manager: Manager, capsys):
        with pytest.raises(MemoryExceedsSystem):
            manager.resolve_memory(Runtime.NODE, "999999", 16)
        assert "For 16GB" in capsys.readouterr().err

    def test_explicit_non_numeric_passes_through(self, manager: Manager, capsys):
        assert manager.resolve_memory(Runtime.NODE, "4g", 16) == "4g"
        assert capsys.readouterr().out == ""

    def test_explicit_wins_over_saved(self, manager: Manager, project_dir: Path):
        manager.store.save_project(str(project_dir), "node", "2048")
        assert manager.resolve_memory(Runtime.NODE, "8192", 16) == "8192"

    def test_saved_config_used(self, manager: Manager, project_dir: Path, capsys):
        manager.store.save_project(str(project_dir), "node", "6144")
        assert manager.resolve_memory(Runtime.NODE, None, 16) == "6144"
        assert "Using saved config for 'my-app': 6144 MB" in capsys.readouterr().out

    def test_saved_config_found_from_subdirectory(self, config: FrcConfig, project_dir: Path):
        sub = project_dir / "src" / "pages"
        sub.mkdir(parents=True)
        store = ProjectStore(config.store_path)
        store.save_project(str(project_dir), "node", "6144")

        mgr = Manager(config, store=store, cwd=sub)
        assert mgr.resolve_memory(Runtime.NODE, None, 16) == "6144"

    def test_saved_config_other_runtime_ignored(self, manager: Manager, project_dir: Path, capsys):
        manager.store.save_project(str(project_dir), "deno", "6144")
        assert manager.resolve_memory(Runtime.NODE, None, 16) is None
        assert "Recommended: 4096 MB" in capsys.readouterr().out

    def test_no_config_recommends_without_applying(self, manager: Manager, capsys):
        assert manager.resolve_memory(Runtime.NODE, None, 32) is None
        out = capsys.readouterr().out
        assert "No saved config. Recommended: 8192 MB" in out
        assert "-m 8192" in out

    def test_bun_no_config_is_silent(self, manager: Manager, capsys):
        assert manager.resolve_memory(Runtime.BUN, None, 16) is None
        assert capsys.readouterr().out == ""


class TestRun:
    def test_explicit_memory_saved(self, manager: Manager, project_dir: Path, capsys):
        with fake_run() as run:
            manager.run(Runtime.NODE, ["index.js"], "4096", save=True)

        run.assert_called_once()
        record = ProjectStore.load(manager.config.store_path).get_project(str(project_dir))
        assert record.runtime == "node"
        assert record.memory == "4096"
        assert "Saved config for 'my-app': node 4096 MB" in capsys.readouterr().out

    def test_saved_memory_reaches_launcher(self, manager: Manager, project_dir: Path):
        manager.store.save_project(str(project_dir), "node", "4096")
        with patch("frc.manager.RuntimeLauncher") as launcher_cls:
            launcher_cls.return_value.run.return_value = LaunchResult(0, "")
            manager.run(Runtime.NODE, ["index.js"])

        args, kwargs = launcher_cls.call_args
        assert args[0] is Runtime.NODE
        assert args[1] == ["index.js"]
        assert kwargs["memory"] == "4096"
        assert kwargs["cwd"] == str(project_dir)

    def test_no_memory_not_saved(self, manager: Manager):
        with fake_run():
            manager.run(Runtime.NODE, ["index.js"])
        assert not manager.config.store_path.exists()

    def test_validation_failure_does_not_save_or_launch(self, manager: Manager):
        with fake_run() as run:
            with pytest.raises(MemoryExceedsSystem):
                manager.run(Runtime.NODE, ["index.js"], "999999", save=True)
        run.assert_not_called()
        assert not manager.config.store_path.exists()

    def test_child_failure(self, manager: Manager):
        with fake_run(returncode=2, stderr="TypeError: x is undefined\n"):
            with pytest.raises(ChildNonZeroExit, match="exit status 2") as exc:
                manager.run(Runtime.NODE, ["index.js"])
        assert exc.value.returncode == 2
        assert not manager.config.store_path.exists()

    def test_oom_escalates_saved_memory(self, manager: Manager, project_dir: Path, capsys):
        manager.store.projects[str(project_dir)] = ProjectRecord("node", "4096", 1000)

        with fake_run(returncode=134, stderr=OOM_STDERR):
            with pytest.raises(DetectedOOM) as exc:
                manager.run(Runtime.NODE, ["build.js"])

        assert (exc.value.old_memory, exc.value.new_memory) == ("4096", "6144")
        record = ProjectStore.load(manager.config.store_path).get_project(str(project_dir))
        assert record.memory == "6144"
        assert record.last_used > 1000
        out = capsys.readouterr().out
        assert "Out of Memory Detected" in out
        assert "4096 MB → 6144 MB" in out

    def test_oom_even_with_zero_exit(self, manager: Manager, project_dir: Path):
        manager.store.save_project(str(project_dir), "node", "1024")
        with fake_run(returncode=0, stderr="heap out of memory"):
            with pytest.raises(DetectedOOM):
                manager.run(Runtime.NODE, [])
        assert manager.store.get_project(str(project_dir)).memory == "3072"

    def test_oom_without_record(self, manager: Manager):
        with fake_run(returncode=134, stderr=OOM_STDERR):
            with pytest.raises(DetectedOOM) as exc:
                manager.run(Runtime.NODE, [])
        assert exc.value.new_memory is None
        assert not manager.config.store_path.exists()

    def test_end_to_end_save_then_reuse(self, config: FrcConfig, project_dir: Path):
        with fake_run():
            Manager(config, cwd=project_dir).run(Runtime.NODE, ["index.js"], "4096", save=True)

        second = Manager(config, cwd=project_dir)
        assert second.resolve_memory(Runtime.NODE, None, 16) == "4096"


class TestInfoCommands:
    def test_show_project_without_config(self, manager: Manager, project_dir: Path, capsys):
        manager.show_project()
        out = capsys.readouterr().out
        assert "Project: my-app" in out
        assert f"Path: {project_dir}" in out
        assert "No saved configuration" in out

    def test_show_project_with_config(self, manager: Manager, project_dir: Path, capsys):
        manager.store.save_project(str(project_dir), "deno", "8192")
        manager.show_project()
        out = capsys.readouterr().out
        assert "Runtime: deno" in out
        assert "Memory: 8192 MB" in out
        assert "Last used: " in out

    def test_list_empty(self, manager: Manager, capsys):
        manager.list_projects()
        assert "No saved project configurations" in capsys.readouterr().out

    def test_list_ordered(self, manager: Manager, capsys):
        manager.store.projects["/work/older"] = ProjectRecord("node", "2048", 100)
        manager.store.projects["/work/newer"] = ProjectRecord("bun", "1024", 200)
        manager.list_projects()
        out = capsys.readouterr().out
        assert "Saved Project Configurations" in out
        assert out.index("newer") < out.index("older")
        assert "Runtime: bun | Memory: 1024 MB" in out

    def test_forget_current(self, manager: Manager, project_dir: Path, capsys):
        manager.store.save_project(str(project_dir), "node", "4096")
        assert manager.forget_project()
        assert ProjectStore.load(manager.config.store_path).get_project(str(project_dir)) is None
        assert "Removed config for 'my-app'" in capsys.readouterr().out

    def test_forget_explicit_path(self, manager: Manager, capsys):
        manager.store.save_project("/elsewhere/site", "node", "4096")
        assert manager.forget_project("/elsewhere/site")
        assert manager.store.get_project("/elsewhere/site") is None

    def test_forget_missing(self, manager: Manager, capsys):
        assert not manager.forget_project("/nope/ghost")
        assert "No config found for 'ghost'" in capsys.readouterr().out
        assert not manager.config.store_path.exists()

    def test_cleanup(self, manager: Manager, capsys):
        manager.store.projects["/old"] = ProjectRecord("node", "4096", 1000)
        manager.store.save_project("/new", "node", "4096")

        assert manager.cleanup(30) == 1
        assert "Cleaned up 1 config(s) older than 30 days" in capsys.readouterr().out
        assert list(ProjectStore.load(manager.config.store_path).projects) == ["/new"]

    def test_show_recommendations(self, manager: Manager, capsys):
        manager.show_recommendations(Runtime.NODE)
        out = capsys.readouterr().out
        assert "System: 16 GB" in out
        assert "Recommendations for node" in out
        assert "frc -m 4096 node script.js" in out

    def test_show_recommendations_bun(self, manager: Manager, capsys):
        manager.show_recommendations(Runtime.BUN)
        out = capsys.readouterr().out
        assert "Recommendations for bun" in out
        assert "automatically" in out
        assert "Examples" not in out


class TestSystemMemory:
    def test_config_override(self, manager: Manager):
        assert manager.system_memory_gb() == 16

    def test_psutil(self):
        fake = MagicMock(total=32 * 1024**3 + 12345)
        with patch("frc.manager.psutil.virtual_memory", return_value=fake):
            assert detect_system_memory_gb() == 32

    def test_psutil_failure_falls_back(self):
        with patch("frc.manager.psutil.virtual_memory", side_effect=OSError("no /proc")):
            assert detect_system_memory_gb() == 16

    def test_detect_when_not_configured(self, tmp_path: Path, project_dir: Path):
        mgr = Manager(FrcConfig(config_dir=tmp_path / "c"), cwd=project_dir)
        with patch("frc.manager.detect_system_memory_gb", return_value=64):
            assert mgr.system_memory_gb() == 64


class TestFormatTimestamp:
    def test_valid(self):
        assert len(format_timestamp(1700000000)) == len("2023-11-14 22:13:20")

    def test_out_of_range(self):
        assert format_timestamp(10**20) == "unknown"
