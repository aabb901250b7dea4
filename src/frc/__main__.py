"""Entry point: frc [OPTIONS] <COMMAND> [ARGS]...

- info <runtime>     Show memory recommendations
- project            Show current project's saved config
- list               List all saved project configs
- forget [path]      Remove saved config for a project
- cleanup [--days N] Remove configs older than N days
- anything else      Run it as a runtime command (node, npm, deno, bun, ...)
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Callable

from frc import __version__
from frc.config import FrcConfig, load_config
from frc.errors import FrcError
from frc.manager import Manager
from frc.runtime import Runtime

logger = logging.getLogger(__name__)

SUBCOMMANDS = ("info", "project", "list", "forget", "cleanup")

_VALUE_OPTIONS = ("-m", "--memory", "-r", "--runtime")

USAGE = """\
frc - Frontend Runtime Container

USAGE:
  frc [OPTIONS] <COMMAND> [ARGS]...

OPTIONS:
  -m, --memory <MB>       Set memory limit in MB (saves to project config)
  -r, --runtime <RUNTIME> Specify runtime (node/deno/bun) explicitly
  -v, --verbose           Debug logging
  -h, --help              Show help information
  --version               Show version

COMMANDS:
  info <runtime>       Show memory recommendations
  project              Show current project's saved config
  list                 List all saved project configs
  forget [path]        Remove saved config for project
  cleanup --days <N>   Remove configs older than N days

EXAMPLES:
  # First time in a project - saves 4GB config
  frc -m 4096 node index.js

  # Later runs - uses saved 4GB automatically
  frc node index.js

  # Explicitly specify runtime for unknown commands
  frc -r node -m 4096 my-custom-script
  frc --runtime deno tsx build.ts

SUPPORTED RUNTIMES:
  Node.js: node, npm, npx, pnpm, yarn    [Memory config: yes]
  Deno:    deno                          [Memory config: yes]
  Bun:     bun                           [Memory config: no]

HOW IT WORKS:
  1. When you run with -m, the memory config is saved for this project
  2. Future runs without -m use the saved config automatically
  3. If no saved config exists, you'll see recommended values
  4. Configs are project-specific (detected via package.json, .git, etc.)
  5. On "heap out of memory" the saved value is raised for the next run

NOTE: Bun uses JavaScriptCore and manages memory automatically.
"""


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _build_parser() -> argparse.ArgumentParser:
    """Parser for the frc options that precede the command."""
    parser = argparse.ArgumentParser(
        prog="frc",
        usage="%(prog)s [OPTIONS] <COMMAND> [ARGS]...",
        allow_abbrev=False,
        description="Frontend Runtime Container - Manage JS runtime memory settings",
    )
    parser.add_argument("-m", "--memory", help="Memory limit in MB; saved for this project")
    parser.add_argument("-r", "--runtime", help="Explicitly specify runtime (node, deno, bun)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--version", action="version", version=f"frc {__version__}")
    return parser


def split_argv(argv: list[str]) -> tuple[list[str], list[str]]:
    """Split argv into (frc options, [command, *args]).

    The split happens at the first token that is neither an option nor an
    option's value; everything from there on belongs to the child untouched.
    A bare "--" among the options ends them and is dropped.
    """
    i = 0
    while i < len(argv):
        token = argv[i]
        if token == "--":
            return argv[:i], argv[i + 1:]
        if token == "-" or not token.startswith("-"):
            break
        i += 2 if token in _VALUE_OPTIONS else 1
    return argv[:i], argv[i:]


def _build_subcommand_parser(command: str, config: FrcConfig) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=f"frc {command}")
    if command == "info":
        parser.add_argument("runtime", help="Runtime (node, deno, bun)")
    elif command == "forget":
        parser.add_argument("path", nargs="?", help="Project path (default: current project)")
    elif command == "cleanup":
        parser.add_argument(
            "-d", "--days", type=int, default=config.cleanup_days,
            help=f"Remove configs older than this many days (default: {config.cleanup_days})",
        )
    return parser


def build_exec_args(
    command: str, runtime: Runtime, args: list[str], runtime_specified: bool
) -> list[str]:
    """Arguments for the runtime binary.

    The command token is kept when the runtime was forced with --runtime or
    when it is a wrapper (npm, yarn, ...) rather than the runtime itself.
    """
    exec_args = []
    if runtime_specified or command != runtime.value:
        exec_args.append(command)
    exec_args.extend(args)
    return exec_args


def _run_subcommand(
    command: str, argv: list[str], manager_factory: Callable[[], Manager], config: FrcConfig
) -> None:
    opts = _build_subcommand_parser(command, config).parse_args(argv)

    if command == "info":
        runtime = Runtime.resolve(opts.runtime)
        manager_factory().show_recommendations(runtime)
    elif command == "project":
        manager_factory().show_project()
    elif command == "list":
        manager_factory().list_projects()
    elif command == "forget":
        manager_factory().forget_project(opts.path)
    elif command == "cleanup":
        manager_factory().cleanup(opts.days)


def _run_command(
    opts: argparse.Namespace,
    command: str,
    args: list[str],
    manager_factory: Callable[[], Manager],
) -> None:
    runtime_specified = opts.runtime is not None
    runtime = Runtime.resolve(opts.runtime if runtime_specified else command)

    manager = manager_factory()
    exec_args = build_exec_args(command, runtime, args, runtime_specified)
    manager.run(runtime, exec_args, opts.memory, save=opts.memory is not None)


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    options, rest = split_argv(argv)
    opts = _build_parser().parse_args(options)
    command, args = (rest[0], rest[1:]) if rest else (None, [])

    try:
        config = load_config()
    except FrcError as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        return 1
    _setup_logging("DEBUG" if opts.verbose else config.log_level)

    if command is None:
        print(USAGE, end="")
        return 0

    def manager_factory() -> Manager:
        return Manager(config)

    try:
        if command in SUBCOMMANDS:
            _run_subcommand(command, args, manager_factory, config)
        else:
            _run_command(opts, command, args, manager_factory)
    except FrcError as e:
        logger.debug("Command failed", exc_info=True)
        print(f"❌ Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
