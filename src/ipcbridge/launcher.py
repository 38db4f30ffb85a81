"""Start worker processes and learn when they are gone.

The worker receives its arguments as a single JSON-encoded command line
argument. `run_worker()` completes exactly once, when the worker exits or when
it could not be started, and never raises for either.
"""

import asyncio
import json
import logging
import os
import sys
from typing import Any

from ipcbridge.base import Log, emit

logger = logging.getLogger(__name__)


async def run_worker(
    worker_path: str | os.PathLike,
    worker_args: Any,
    *,
    python: str = sys.executable,
    env: dict[str, str] | None = None,
    log: Log | None = None,
) -> int | None:
    """Run `worker_path` with the Python interpreter and wait for it to exit.

    Args:
        worker_path: Worker script to run
        worker_args: JSON-serializable arguments, passed as the only argument
        python: Interpreter to run the worker with
        env: Environment for the worker (inherits ours if None)
        log: Logger for process events (defaults to this module's logger)

    Returns:
        The worker's exit code, or None if it could not be started.
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            python,
            os.fspath(worker_path),
            json.dumps(worker_args),
            env=env,
        )
    except OSError as e:
        emit(log, "error", f"Failed to start worker {worker_path}: {e}", logger)
        return None

    emit(log, "info", f"Started worker {worker_path} (pid {proc.pid})", logger)
    returncode = await proc.wait()
    emit(log, "info", f"Worker {worker_path} exited with code {returncode}", logger)
    return returncode
