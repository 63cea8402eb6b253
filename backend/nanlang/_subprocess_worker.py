"""Subprocess worker that executes one nanLanguage script.

Run as ``python -m backend.nanlang._subprocess_worker``. Reads a single JSON
object from stdin with shape {"code": "...", "settings": {...}} and writes the
`Interpreter.run` result dict to stdout as JSON.

The calling process is responsible for timeouts and OS resource caps.
"""

import json
import sys

from backend.nanlang.interpreter import Interpreter


def main() -> None:
    raw = sys.stdin.read()
    try:
        payload = json.loads(raw)
        code = payload.get("code", "")
        settings = payload.get("settings") or {}
    except (ValueError, AttributeError) as e:
        # report payload problems through the same JSON channel
        print(json.dumps({"errors": {"code": "BAD_PAYLOAD", "message": str(e)}}))
        sys.exit(1)

    it = Interpreter()
    it.apply_settings(settings)
    print(json.dumps(it.run(code)))


if __name__ == "__main__":
    main()
