"""nanLanguage statement executor.

A script is a sequence of lines. Each line is one statement, recognised by its
first whitespace-delimited token:

- ``print "text"`` / ``print name`` / ``print <expr>``
- ``set name = <expr>`` (the ``=`` is optional)
- ``add name <expr>``
- ``loop name:<count> (`` ... ``)``
- ``if <condition> (`` ... ``)``
- ``comment ...`` and blank lines are ignored

``loop`` and ``if`` capture the lines up to their matching ``)`` and run them
by recursing into the executor, once per iteration for ``loop``. Nothing is
pre-parsed: block bodies stay raw text until the recursive call reaches them.

Errors never stop a script. A bad statement emits one descriptive line and
execution carries on with the next statement at the same nesting level. The
only exception is the opt-in resource caps (``max_steps``, ``max_time_s``,
``max_output_chars``), which abort the run with ``LimitExceeded``.
"""

import math
import re
import sys
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from .evaluator import evaluate
from .store import VariableStore

OutputFn = Callable[[str], None]

BLOCK_OPEN = "("
BLOCK_CLOSE = ")"
INTEGER_TOLERANCE = 1e-9
SIGNIFICANT_DIGITS = 12

_IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


class LimitExceeded(Exception):
    """Raised when a configured resource cap is hit.

    Attributes:
        code: ``STEP_LIMIT``, ``TIMEOUT`` or ``OUTPUT_LIMIT``
    """

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code


def format_number(value: float) -> str:
    """Render a value the way ``print`` shows it.

    Values within 1e-9 of an integer print as that integer; anything else
    uses 12 significant digits.
    """
    if math.isfinite(value):
        rounded = round(value)
        if abs(value - rounded) < INTEGER_TOLERANCE:
            return str(int(rounded))
    return "%.*g" % (SIGNIFICANT_DIGITS, value)


def _write_stdout(line: str) -> None:
    sys.stdout.write(line + "\n")


def _first_token(line: str) -> Tuple[str, str]:
    parts = line.split(None, 1)
    if not parts:
        return "", ""
    return parts[0], parts[1] if len(parts) > 1 else ""


def _is_block_opener(text: str) -> bool:
    token, _ = _first_token(text)
    return token in ("loop", "if") and text.endswith(BLOCK_OPEN)


class Interpreter:
    """Executes nanLanguage scripts against one variable store.

    Tunable attributes (all ``None`` = unlimited):
    - max_loop: iterations allowed per ``loop``; larger counts are truncated
      and a warning is recorded
    - max_steps: statements dispatched per run
    - max_time_s: wall-clock seconds per run
    - max_output_chars: characters emitted per run
    """

    def __init__(
        self,
        variables: Optional[VariableStore] = None,
        output: Optional[OutputFn] = None,
    ):
        self.variables = variables if variables is not None else VariableStore()
        self.output = output or _write_stdout
        # Safety limits, opt-in
        self.max_loop: Optional[int] = None
        self.max_steps: Optional[int] = None
        self.max_time_s: Optional[float] = None
        self.max_output_chars: Optional[int] = None
        self.warnings: List[str] = []
        self._steps = 0
        self._output_chars = 0
        self._deadline: Optional[float] = None

    def apply_settings(self, settings: Dict[str, Any]) -> None:
        """Copy recognised cap values from a settings dict onto this instance."""
        for key in ("max_loop", "max_steps", "max_time_s", "max_output_chars"):
            if settings.get(key) is not None:
                setattr(self, key, settings[key])

    # --- public API -----------------------------------------------------
    def execute(self, code: str) -> None:
        """Run a whole script, emitting output through ``self.output``.

        Raises:
            LimitExceeded: only when one of the caps is configured and hit.
        """
        self._steps = 0
        self._output_chars = 0
        self._deadline = time.monotonic() + self.max_time_s if self.max_time_s is not None else None
        self._execute_lines(code.split("\n"))

    def run(self, code: str) -> Dict[str, Any]:
        """Run a script and collect everything it produced.

        Returns a dict with ``output``, ``lines``, ``warnings``, ``variables``
        and ``errors`` (``None`` unless a cap aborted the run).
        """
        lines: List[str] = []
        previous_output = self.output
        self.output = lines.append
        self.warnings = []
        errors: Optional[Dict[str, str]] = None
        try:
            self.execute(code)
        except LimitExceeded as e:
            errors = {"code": e.code, "message": str(e)}
        except RecursionError:
            errors = {"code": "RECURSION_LIMIT", "message": "Nesting too deep"}
        finally:
            self.output = previous_output
        return {
            "output": "\n".join(lines) + ("\n" if lines else ""),
            "lines": lines,
            "warnings": list(self.warnings),
            "variables": self.variables.as_dict(),
            "errors": errors,
        }

    # --- output and budgets ------------------------------------------------
    def _emit(self, text: str) -> None:
        if self.max_output_chars is not None:
            if self._output_chars + len(text) > self.max_output_chars:
                raise LimitExceeded("OUTPUT_LIMIT", "Output length limit reached")
            self._output_chars += len(text)
        self.output(text)

    def _charge_step(self) -> None:
        self._steps += 1
        if self.max_steps is not None and self._steps > self.max_steps:
            self.warnings.append("Step limit exceeded")
            raise LimitExceeded("STEP_LIMIT", "Step limit exceeded")
        if self._deadline is not None and time.monotonic() > self._deadline:
            raise LimitExceeded("TIMEOUT", "Time limit exceeded")

    # --- core loop --------------------------------------------------------
    def _execute_lines(self, lines: List[str]) -> None:
        i = 0
        while i < len(lines):
            line = lines[i].strip()
            token, rest = _first_token(line)
            if not line or token == "comment":
                i += 1
                continue
            self._charge_step()
            i = self._dispatch_statement(lines, i, token, rest)

    def _dispatch_statement(self, lines: List[str], i: int, token: str, rest: str) -> int:
        """Run the statement at ``lines[i]`` and return the index of the next one."""
        if token == "loop":
            return self._handle_loop(lines, i, rest)
        if token == "if":
            return self._handle_if(lines, i, rest)

        handler = {
            "print": self._handle_print,
            "set": self._handle_set,
            "add": self._handle_add,
        }.get(token)
        if handler is None:
            self._emit(f"Unknown command: {token}")
        else:
            handler(rest)
        return i + 1

    def _extract_block(self, lines: List[str], start_idx: int) -> Tuple[Optional[List[str]], int]:
        """Collect raw lines up to the ``)`` matching a header at ``start_idx - 1``.

        Returns (block_lines, index_after_close). ``block_lines`` is None when
        the script ends before the block is closed; the index is then the end
        of the script.
        """
        block: List[str] = []
        depth = 0
        j = start_idx
        while j < len(lines):
            raw = lines[j]
            txt = raw.strip()
            if txt == BLOCK_CLOSE:
                if depth == 0:
                    return block, j + 1
                depth -= 1
            elif _is_block_opener(txt):
                depth += 1
            block.append(raw)
            j += 1
        return None, j

    def _capture_block(self, lines: List[str], i: int) -> Tuple[Optional[List[str]], int]:
        block, next_i = self._extract_block(lines, i + 1)
        if block is None:
            self._emit("Syntax error: missing ')' to close block")
        return block, next_i

    def _valid_name(self, name: str) -> bool:
        if _IDENT_RE.fullmatch(name):
            return True
        self._emit(f"Syntax error: invalid variable name '{name}'")
        return False

    # --- block statements ---------------------------------------------------
    def _handle_loop(self, lines: List[str], i: int, rest: str) -> int:
        """``loop var:count (`` ... ``)``: run the body ``floor(count)`` times."""
        header = rest.rstrip()
        if not header.endswith(BLOCK_OPEN):
            self._emit("Syntax error: expected (")
            return i + 1
        block, next_i = self._capture_block(lines, i)
        if block is None:
            return next_i

        var_and_count = header[:-1].strip()
        if ":" not in var_and_count:
            self._emit("Syntax error: loop expects var:count")
            return next_i
        var, count_expr = var_and_count.split(":", 1)
        var = var.strip()
        if not self._valid_name(var):
            return next_i

        result = evaluate(count_expr.strip(), self.variables, "Loop count error: ")
        if not result.ok:
            self._emit(result.message)
            return next_i
        if not math.isfinite(result.value):
            self._emit("Loop count error: count is not a finite number")
            return next_i

        count = math.floor(result.value)
        if self.max_loop is not None and count > self.max_loop:
            self.warnings.append(f"Loop count limited to {self.max_loop}")
            count = self.max_loop

        for n in range(count):
            # every pass is a step, so loops with empty bodies stay bounded
            self._charge_step()
            self.variables.set(var, float(n))
            self._execute_lines(block)
        return next_i

    def _handle_if(self, lines: List[str], i: int, rest: str) -> int:
        """``if <condition> (`` ... ``)``: run the body once when the condition is non-zero."""
        header = rest.rstrip()
        if not header.endswith(BLOCK_OPEN):
            self._emit("Syntax error: if expects '(' at end of line")
            return i + 1
        block, next_i = self._capture_block(lines, i)
        if block is None:
            return next_i

        condition = header[:-1].strip()
        result = evaluate(condition, self.variables, "If condition error: ")
        if not result.ok:
            self._emit(result.message)
        elif result.value != 0.0:
            self._execute_lines(block)
        return next_i

    # --- simple statements --------------------------------------------------
    def _handle_print(self, rest: str) -> None:
        if len(rest) >= 2 and rest.startswith('"') and rest.endswith('"'):
            self._emit(rest[1:-1])
            return
        if rest in self.variables:
            self._emit(format_number(self.variables[rest]))
            return
        result = evaluate(rest, self.variables, "Print expr error: ")
        # unparseable arguments are printed as plain text
        self._emit(format_number(result.value) if result.ok else rest)

    def _handle_set(self, rest: str) -> None:
        var, expr = _first_token(rest)
        if not var:
            self._emit("Syntax error: set needs a variable name")
            return
        if not self._valid_name(var):
            return
        if expr.startswith("=") and not expr.startswith("=="):
            expr = expr[1:].strip()
        if not expr:
            self._emit("Syntax error: set needs an expression")
            return
        result = evaluate(expr, self.variables, "Set expr error: ")
        if result.ok:
            self.variables.set(var, result.value)
        else:
            self._emit(result.message)

    def _handle_add(self, rest: str) -> None:
        var, expr = _first_token(rest)
        if not var:
            self._emit("Syntax error: add needs a variable")
            return
        if var not in self.variables:
            self._emit(f"Error: variable '{var}' not found")
            return
        if not expr:
            self._emit("Syntax error: add needs a value/expression")
            return
        result = evaluate(expr, self.variables, "Add expr error: ")
        if result.ok:
            self.variables.add(var, result.value)
        else:
            self._emit(result.message)
