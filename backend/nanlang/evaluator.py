"""Expression evaluator for nanLanguage.

The evaluator is a recursive-descent parser that scans the expression text in
place (there is no separate tokenizer) and computes the value as it parses.
Nothing is cached: every call re-reads the text, so evaluating the same
expression against an unchanged store always gives the same result.

Grammar, loosest binding first::

    expr        := logical_or
    logical_or  := logical_and ( "||" logical_and )*
    logical_and := equality ( "&&" equality )*
    equality    := comparison ( ("=="|"!=") comparison )*
    comparison  := term ( (">"|"<"|">="|"<=") term )*
    term        := factor ( ("+"|"-") factor )*
    factor      := unary ( ("*"|"/"|"%") unary )*
    unary       := ("+"|"-"|"!") unary | primary
    primary     := number | identifier | identifier "(" args ")" | "(" expr ")"

Every value is a float. Comparisons and logical operators produce exactly
``1.0`` or ``0.0``; any non-zero operand counts as true.

Two entry points are provided:

- ``eval_expr`` returns the float or raises ``EvalError``;
- ``evaluate`` never raises for malformed input and returns an ``Evaluation``
  carrying either the value or the error, which is what the statement
  executor branches on.
"""

import re
from dataclasses import dataclass
from typing import List, Mapping, Optional

import numpy as np

from .builtins import call_builtin, ieee, lookup


class EvalError(Exception):
    """Raised when an expression cannot be parsed or evaluated.

    The message already carries the caller's prefix and the remaining input,
    e.g. ``Set expr error: Unknown variable: y near: ''``.

    Attributes:
        column: 1-based column where scanning stopped
        text: the expression text that was being parsed
    """

    def __init__(self, message: str, *, column: Optional[int] = None, text: Optional[str] = None):
        super().__init__(message)
        self.column = column
        self.text = text


@dataclass(frozen=True)
class Evaluation:
    """Outcome of ``evaluate``: exactly one of ``value``/``error`` is meaningful."""

    value: float = 0.0
    error: Optional[EvalError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def message(self) -> str:
        return str(self.error) if self.error is not None else ""


_NUMBER_RE = re.compile(r"(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?", re.ASCII)
_IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_DIGITS = "0123456789"


def _truth(v: float) -> float:
    return 1.0 if v != 0.0 else 0.0


class ExpressionParser:
    """Single-use parser over one expression string.

    Args:
        text: expression source, e.g. ``"2 + 3 * x"``.
        variables: read-only view of the variable store.
        prefix: text prepended to every failure message, naming the operation.
    """

    def __init__(self, text: str, variables: Mapping[str, float], prefix: str = "Expr error: "):
        self.text = text
        self.variables = variables
        self.prefix = prefix
        self.pos = 0

    # --- scanning helpers ---------------------------------------------------
    def _skip_ws(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def _match(self, token: str) -> bool:
        self._skip_ws()
        if self.text.startswith(token, self.pos):
            self.pos += len(token)
            return True
        return False

    def _peek(self) -> str:
        self._skip_ws()
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def _fail(self, msg: str) -> EvalError:
        return EvalError(
            f"{self.prefix}{msg} near: '{self.text[self.pos:]}'",
            column=self.pos + 1,
            text=self.text,
        )

    # --- entry point --------------------------------------------------------
    def parse(self) -> float:
        value = self._expr()
        self._skip_ws()
        if self.pos != len(self.text):
            raise self._fail("Unexpected trailing characters")
        return value

    # --- grammar rules ------------------------------------------------------
    def _expr(self) -> float:
        return self._logical_or()

    def _logical_or(self) -> float:
        v = self._logical_and()
        while self._match("||"):
            r = self._logical_and()
            v = 1.0 if (v != 0.0 or r != 0.0) else 0.0
        return v

    def _logical_and(self) -> float:
        v = self._equality()
        while self._match("&&"):
            r = self._equality()
            v = 1.0 if (v != 0.0 and r != 0.0) else 0.0
        return v

    def _equality(self) -> float:
        v = self._comparison()
        while True:
            if self._match("=="):
                r = self._comparison()
                v = 1.0 if v == r else 0.0
            elif self._match("!="):
                r = self._comparison()
                v = 1.0 if v != r else 0.0
            else:
                return v

    def _comparison(self) -> float:
        v = self._term()
        while True:
            # two-character operators must be tried first
            if self._match(">="):
                r = self._term()
                v = 1.0 if v >= r else 0.0
            elif self._match("<="):
                r = self._term()
                v = 1.0 if v <= r else 0.0
            elif self._match(">"):
                r = self._term()
                v = 1.0 if v > r else 0.0
            elif self._match("<"):
                r = self._term()
                v = 1.0 if v < r else 0.0
            else:
                return v

    def _term(self) -> float:
        v = self._factor()
        while True:
            if self._match("+"):
                v = v + self._factor()
            elif self._match("-"):
                v = v - self._factor()
            else:
                return v

    def _factor(self) -> float:
        v = self._unary()
        while True:
            if self._match("*"):
                v = v * self._unary()
            elif self._match("/"):
                v = ieee(np.divide, v, self._unary())
            elif self._match("%"):
                v = ieee(np.fmod, v, self._unary())
            else:
                return v

    def _unary(self) -> float:
        if self._match("+"):
            return self._unary()
        if self._match("-"):
            return -self._unary()
        if self._match("!"):
            return 0.0 if _truth(self._unary()) else 1.0
        return self._primary()

    def _primary(self) -> float:
        if self._match("("):
            v = self._expr()
            if not self._match(")"):
                raise self._fail("Expected ')'")
            return v

        ch = self._peek()
        if ch.isascii() and (ch.isalpha() or ch == "_"):
            name = self._identifier()
            if self._match("("):
                return self._call(name, self._arguments())
            if name in self.variables:
                return self.variables[name]
            raise self._fail(f"Unknown variable: {name}")

        if ch and ch in _DIGITS + ".":
            return self._number()

        raise self._fail("Expected primary expression")

    # --- terminals ----------------------------------------------------------
    def _identifier(self) -> str:
        m = _IDENT_RE.match(self.text, self.pos)
        if not m:
            raise self._fail("Expected identifier")
        self.pos = m.end()
        return m.group(0)

    def _number(self) -> float:
        # an exponent marker without digits is left unconsumed by the pattern
        m = _NUMBER_RE.match(self.text, self.pos)
        if not m:
            raise self._fail("Expected number")
        self.pos = m.end()
        return float(m.group(0))

    def _arguments(self) -> List[float]:
        args: List[float] = []
        if self._match(")"):
            return args
        while True:
            args.append(self._expr())
            if self._match(")"):
                return args
            if not self._match(","):
                raise self._fail("Expected ',' or ')'")

    def _call(self, name: str, args: List[float]) -> float:
        func = lookup(name)
        if func is None:
            raise self._fail(f"Unknown function: {name}")
        try:
            return call_builtin(func, args)
        except TypeError as e:
            raise self._fail(str(e)) from None


def eval_expr(expr: str, variables: Mapping[str, float], prefix: str = "Expr error: ") -> float:
    """Parse and evaluate ``expr`` against ``variables``.

    Raises:
        EvalError: on any malformed input, unknown name or bad arity.
    """
    return ExpressionParser(expr, variables, prefix).parse()


def evaluate(expr: str, variables: Mapping[str, float], prefix: str = "Expr error: ") -> Evaluation:
    """Evaluate ``expr`` and wrap the outcome in an ``Evaluation``.

    Nesting deep enough to exhaust the Python stack is reported as an error
    for this expression alone.
    """
    parser = ExpressionParser(expr, variables, prefix)
    try:
        return Evaluation(value=parser.parse())
    except EvalError as e:
        return Evaluation(error=e)
    except RecursionError:
        return Evaluation(error=parser._fail("Expression nested too deeply"))
