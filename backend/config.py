"""Server-side configuration read from the environment.

Every value has a conservative default and can be overridden with a
``NANLANG_*`` environment variable (useful for tests and deployments).
"""

import os
from dataclasses import dataclass
from typing import Any, Dict, Optional


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.environ.get(name)
    return int(raw) if raw else default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    return float(raw) if raw else default


@dataclass
class Limits:
    """Ceilings the API enforces on every run, whatever the client asks for."""

    max_steps: int = 100_000
    max_loop: int = 10_000
    max_time_s: float = 1.5
    max_output_chars: int = 5_000
    subprocess_timeout_s: float = 2.0
    subprocess_mem_mb: Optional[int] = None

    @classmethod
    def from_env(cls) -> "Limits":
        defaults = cls()
        return cls(
            max_steps=_env_int("NANLANG_MAX_STEPS", defaults.max_steps),
            max_loop=_env_int("NANLANG_MAX_LOOP", defaults.max_loop),
            max_time_s=_env_float("NANLANG_MAX_TIME_S", defaults.max_time_s),
            max_output_chars=_env_int("NANLANG_MAX_OUTPUT_CHARS", defaults.max_output_chars),
            subprocess_timeout_s=_env_float("NANLANG_SUBPROCESS_TIMEOUT_S", defaults.subprocess_timeout_s),
            subprocess_mem_mb=_env_int("NANLANG_SUBPROCESS_MEM_MB", defaults.subprocess_mem_mb),
        )

    def as_settings(self) -> Dict[str, Any]:
        return {
            "max_steps": self.max_steps,
            "max_loop": self.max_loop,
            "max_time_s": self.max_time_s,
            "max_output_chars": self.max_output_chars,
        }


LOG_LEVEL = os.environ.get("NANLANG_LOG_LEVEL", "INFO").upper()
