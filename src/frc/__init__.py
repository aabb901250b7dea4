"""frc — Frontend Runtime Container.

Wraps node/deno/bun invocations, remembers a memory limit per project and
bumps it after an out-of-memory crash.
"""

__version__ = "0.1.0"
