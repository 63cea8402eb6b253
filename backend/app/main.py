"""FastAPI application entrypoints for nanLanguage.

Handlers stay small: each `/run` request builds a fresh `Interpreter` (and so
a fresh variable store) to avoid cross-request state sharing. Server-side caps
are always applied so clients cannot lift the resource limits.
"""

import json
import logging
import math
import time
from typing import Any, Dict, Optional

import uvicorn
from fastapi import FastAPI
from pydantic import BaseModel

from ..config import LOG_LEVEL, Limits
from ..nanlang.evaluator import evaluate
from ..nanlang.interpreter import Interpreter, format_number
from ..nanlang.store import VariableStore
from ..nanlang.subprocess_runner import run_script_in_subprocess

logger = logging.getLogger(__name__)

app = FastAPI(title="nanLanguage API", version="0.1")

server_limits = Limits.from_env()


def _cap_settings(settings: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Clamp client-supplied caps to the server's ceilings.

    Missing values fall back to the ceiling itself, so every run is bounded.
    Returns a dict suitable for `Interpreter.apply_settings`.
    """
    safe = server_limits.as_settings()
    if not settings:
        return safe
    caps = {
        "max_steps": min(int(settings.get("max_steps", safe["max_steps"])), safe["max_steps"]),
        "max_loop": min(int(settings.get("max_loop", safe["max_loop"])), safe["max_loop"]),
        "max_time_s": min(float(settings.get("max_time_s", safe["max_time_s"])), safe["max_time_s"]),
        "max_output_chars": min(
            int(settings.get("max_output_chars", safe["max_output_chars"])), safe["max_output_chars"]
        ),
    }
    caps["use_subprocess"] = bool(settings.get("use_subprocess", False))
    return caps


def _present(result: Dict[str, Any]) -> Dict[str, Any]:
    """Make a run result JSON-safe: variables are shown as `print` would show them."""
    out = dict(result)
    out["variables"] = {k: format_number(float(v)) for k, v in (result.get("variables") or {}).items()}
    return out


def _run_in_subprocess(code: str, caps: Dict[str, Any]) -> Dict[str, Any]:
    rc, out, err = run_script_in_subprocess(
        code,
        settings=caps,
        timeout_s=server_limits.subprocess_timeout_s,
        mem_limit_mb=server_limits.subprocess_mem_mb,
    )
    if rc == -1:
        return {"output": "", "lines": [], "warnings": [], "variables": {},
                "errors": {"code": "TIMEOUT", "message": "Subprocess timed out"}}
    try:
        return json.loads(out)
    except ValueError:
        logger.warning("subprocess worker failed (rc=%s): %s", rc, err.strip())
        return {"output": "", "lines": [], "warnings": [], "variables": {},
                "errors": {"code": "SUBPROCESS_FAILED", "message": err.strip() or f"exit code {rc}"}}


class RunRequest(BaseModel):
    """Body of `/run`.

    Fields:
        code: nanLanguage source text.
        settings: optional caps (clamped server-side) and `use_subprocess`.
    """
    code: str
    settings: Optional[Dict[str, Any]] = None


@app.post("/run")
def run_code(req: RunRequest):
    """Execute a script and return its output, warnings and final variables.

    Any unexpected exception becomes a SERVER_ERROR payload so callers always
    receive the same JSON shape.
    """
    start = time.time()
    try:
        capped = _cap_settings(req.settings or {})
        if capped.get("use_subprocess"):
            result = _run_in_subprocess(req.code, capped)
        else:
            it = Interpreter()
            it.apply_settings(capped)
            result = it.run(req.code)
        result = _present(result)
    except Exception as e:
        logger.exception("run failed")
        return {
            "output": "",
            "lines": [],
            "warnings": [],
            "variables": {},
            "duration_ms": int((time.time() - start) * 1000),
            "errors": {"code": "SERVER_ERROR", "message": str(e)},
        }
    result["duration_ms"] = int((time.time() - start) * 1000)
    return result


class EvaluateRequest(BaseModel):
    expression: str
    variables: Optional[Dict[str, float]] = None


@app.post("/evaluate")
def evaluate_expression(req: EvaluateRequest):
    store = VariableStore()
    for name, value in (req.variables or {}).items():
        store.set(name, value)
    result = evaluate(req.expression, store)
    if not result.ok:
        return {"value": None, "formatted": None, "error": result.message}
    value = result.value if math.isfinite(result.value) else None
    return {"value": value, "formatted": format_number(result.value), "error": None}


def serve() -> None:
    """Console entry point: run the API with uvicorn."""
    logging.basicConfig(level=LOG_LEVEL)
    uvicorn.run(app, host="127.0.0.1", port=8000, log_level=LOG_LEVEL.lower())


if __name__ == "__main__":
    serve()
