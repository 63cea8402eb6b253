"""Variable store shared by the statement executor and the evaluator.

There is exactly one store per run. Variables are global: the executor
writes through ``set``/``add`` while the evaluator only reads, through the
``Mapping`` interface.
"""

from collections.abc import Mapping
from typing import Dict, Iterator


class VariableStore(Mapping):
    """Maps variable name -> float."""

    def __init__(self) -> None:
        self._vars: Dict[str, float] = {}

    # --- read side (Mapping) ---------------------------------------------
    def __getitem__(self, name: str) -> float:
        return self._vars[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._vars)

    def __len__(self) -> int:
        return len(self._vars)

    # --- write side --------------------------------------------------------
    def set(self, name: str, value: float) -> None:
        self._vars[name] = float(value)

    def add(self, name: str, delta: float) -> float:
        """Add ``delta`` to an existing variable and return the new value.

        Raises KeyError if ``name`` has never been set.
        """
        value = self._vars[name] + delta
        self._vars[name] = value
        return value

    def as_dict(self) -> Dict[str, float]:
        return dict(self._vars)

    def __repr__(self) -> str:
        return f"VariableStore({self._vars!r})"
