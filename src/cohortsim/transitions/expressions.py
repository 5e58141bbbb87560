"""Cell expressions for transition matrix and state value templates.

A template cell is one of three things:
- ``Constant(value)``: a fixed number
- ``ParameterRef(name)``: a value looked up in the parameter store
- ``Complement()``: one minus the other cells of the same row

Cells are resolved by an explicit pass over the template; nothing is
evaluated as code.
"""

from __future__ import annotations

from dataclasses import dataclass
from numbers import Real
from typing import Union

from cohortsim.core.parameters import ParameterStore

COMPLEMENT_MARKER = "C"


@dataclass(frozen=True)
class Constant:
    value: float

    def __repr__(self) -> str:
        return repr(self.value)


@dataclass(frozen=True)
class ParameterRef:
    name: str

    def __repr__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Complement:
    def __repr__(self) -> str:
        return COMPLEMENT_MARKER


Cell = Union[Constant, ParameterRef, Complement]

C = Complement()


def as_cell(obj) -> Cell:
    """Coerce a number, parameter name or ``"C"`` into a cell."""
    if isinstance(obj, (Constant, ParameterRef, Complement)):
        return obj
    if isinstance(obj, bool):
        raise TypeError(f"Cannot use a boolean as a matrix cell: {obj!r}")
    if isinstance(obj, Real):
        return Constant(float(obj))
    if isinstance(obj, str):
        name = obj.strip()
        if name == COMPLEMENT_MARKER:
            return C
        if not name:
            raise ValueError("Parameter reference must not be empty")
        return ParameterRef(name)
    raise TypeError(f"Cannot interpret {obj!r} as a matrix cell")


def evaluate(
    cell: Cell,
    store: ParameterStore | None,
    sample: int = 0,
    stratum: int = 0,
    time_interval: int = 0,
) -> float:
    """Value of a constant or parameter cell."""
    if isinstance(cell, Constant):
        return cell.value
    if isinstance(cell, ParameterRef):
        if store is None:
            raise ValueError(f"Cell {cell.name!r} references a parameter but no store was given")
        return store.get(cell.name, sample, stratum, time_interval)
    raise TypeError("Complement cells are resolved per row, not evaluated directly")
