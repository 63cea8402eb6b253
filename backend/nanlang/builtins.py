"""Built-in numeric functions callable from expressions.

Each function is registered with a fixed arity; the evaluator checks the
argument count before calling. Results follow the C math library: domain
errors give ``nan`` and overflow gives ``inf`` instead of raising, which is
why the implementations go through numpy rather than ``math``.
"""

from dataclasses import dataclass
from typing import Callable, Dict, Optional, Sequence

import numpy as np


@dataclass(frozen=True)
class BuiltinFunc:
    name: str
    arity: int
    fn: Callable[..., float]

    def describe_arity(self) -> str:
        return f"{self.arity} arg" if self.arity == 1 else f"{self.arity} args"


BUILTIN_FUNCS: Dict[str, BuiltinFunc] = {}


def ieee(ufunc: Callable, *args: float) -> float:
    """Apply a numpy ufunc to plain floats with floating-point warnings silenced."""
    with np.errstate(all="ignore"):
        return float(ufunc(*args))


def register_builtin_func(name: str, ufunc: Callable, arity: int = 1) -> BuiltinFunc:
    def call(*args: float) -> float:
        return ieee(ufunc, *args)

    func = BuiltinFunc(name=name, arity=arity, fn=call)
    BUILTIN_FUNCS[name] = func
    return func


def lookup(name: str) -> Optional[BuiltinFunc]:
    return BUILTIN_FUNCS.get(name)


def call_builtin(func: BuiltinFunc, args: Sequence[float]) -> float:
    if len(args) != func.arity:
        raise TypeError(f"{func.name}() expects {func.describe_arity()}")
    return func.fn(*args)


# 1-arg
register_builtin_func("sqrt", np.sqrt)
register_builtin_func("sin", np.sin)
register_builtin_func("cos", np.cos)
register_builtin_func("tan", np.tan)
register_builtin_func("abs", np.fabs)
register_builtin_func("log", np.log)
register_builtin_func("exp", np.exp)
register_builtin_func("floor", np.floor)
register_builtin_func("ceil", np.ceil)

# 2-arg; fmin/fmax ignore a NaN operand
register_builtin_func("pow", np.power, arity=2)
register_builtin_func("min", np.fmin, arity=2)
register_builtin_func("max", np.fmax, arity=2)
