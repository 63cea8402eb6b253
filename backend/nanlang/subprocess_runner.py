"""Run a nanLanguage script in a short-lived child process.

`run_script_in_subprocess` launches ``backend.nanlang._subprocess_worker``,
which speaks a simple JSON-over-stdin/stdout protocol. The parent enforces a
wall-clock timeout. On POSIX it can also apply light OS-level limits (CPU
seconds, address space) so a runaway ``loop`` cannot take the server down
with it.

Behavior:
  - The child runs with a minimal environment and closed file descriptors.
  - Returns (returncode, stdout, stderr); a returncode of -1 means the child
    was killed on timeout.

This is not a substitute for container/VM isolation.
"""

import json
import os
import subprocess
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

WORKER_MODULE = "backend.nanlang._subprocess_worker"
PROJECT_ROOT = Path(__file__).resolve().parents[2]


def _make_posix_preexec(cpu_seconds: Optional[int], mem_limit_mb: Optional[int]):
    """Return a preexec_fn that applies resource limits on POSIX systems."""
    def preexec():
        import resource

        if cpu_seconds is not None:
            resource.setrlimit(resource.RLIMIT_CPU, (int(cpu_seconds), int(cpu_seconds)))
        if mem_limit_mb is not None:
            mem_bytes = int(mem_limit_mb) * 1024 * 1024
            resource.setrlimit(resource.RLIMIT_AS, (mem_bytes, mem_bytes))
        # new session so a timeout kill does not signal the parent's group
        os.setsid()

    return preexec


def run_script_in_subprocess(
    code: str,
    settings: Optional[Dict[str, Any]] = None,
    timeout_s: float = 2,
    *,
    cpu_seconds: Optional[int] = 2,
    mem_limit_mb: Optional[int] = None,
) -> Tuple[int, str, str]:
    """Run ``code`` in the worker and return (returncode, stdout, stderr).

    Parameters:
      - code: nanLanguage source text.
      - settings: cap values forwarded to the child's Interpreter.
      - timeout_s: wall-clock timeout for the whole operation (seconds).
      - cpu_seconds: optional RLIMIT_CPU applied on POSIX.
      - mem_limit_mb: optional RLIMIT_AS (MB) applied on POSIX.

    On timeout the child is killed and (-1, "", "TIMEOUT") is returned.
    """
    # Minimal environment; PATH is kept so the interpreter can find its libraries.
    env = {"PATH": os.environ.get("PATH", ""), "OPENBLAS_NUM_THREADS": "1"}

    popen_kwargs: Dict[str, Any] = dict(
        args=[sys.executable, "-m", WORKER_MODULE],
        stdin=subprocess.PIPE,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        env=env,
        cwd=str(PROJECT_ROOT),
        close_fds=True,
    )
    if os.name != "nt":
        popen_kwargs["preexec_fn"] = _make_posix_preexec(cpu_seconds, mem_limit_mb)

    proc = subprocess.Popen(**popen_kwargs)

    payload = json.dumps({"code": code, "settings": settings or {}})
    try:
        out, err = proc.communicate(payload, timeout=timeout_s)
    except subprocess.TimeoutExpired:
        proc.kill()
        proc.communicate()
        return -1, "", "TIMEOUT"

    return proc.returncode, out or "", err or ""
