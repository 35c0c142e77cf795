"""Grid-to-object mapping and the tagged append inputs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from .errors import AppendRejectedError

InputValue = Union[bool, str, int, float, None]
RowArray = List[Any]
RowObject = Dict[str, Any]

Sanitize = Callable[[Any], Any]
KeyTransform = Callable[[str], str]
RowFilter = Callable[[Any], bool]


@dataclass(frozen=True)
class PositionalRow:
    """Cells already ordered to match the sheet's columns."""

    values: Sequence[InputValue]


@dataclass(frozen=True)
class KeyedRow:
    """Cells keyed by column name; keys match case-insensitively."""

    values: Mapping[str, InputValue]


RowInput = Union[PositionalRow, KeyedRow]


def header_cells(
    grid: Sequence[Sequence[Any]],
    index: int,
) -> Optional[Sequence[Any]]:
    if index < 0 or index >= len(grid):
        return None
    return grid[index]


def sanitize_rows(
    grid: Sequence[Sequence[Any]],
    skip: int,
    sanitize: Sanitize,
    row_filter: RowFilter,
) -> List[RowArray]:
    sanitized = ([sanitize(cell) for cell in row] for row in grid[skip:])
    return [row for row in sanitized if row_filter(row)]


def to_objects(
    rows: Sequence[Sequence[Any]],
    columns: Sequence[str],
    row_filter: RowFilter,
) -> List[RowObject]:
    """Zip each row against ``columns`` by position.

    Cells whose column has no name (or lies past the header) are omitted from
    the object. Short rows simply produce objects with fewer keys.
    """

    objects: List[RowObject] = []
    for row in rows:
        obj: RowObject = {}
        for index, value in enumerate(row):
            key = columns[index] if index < len(columns) else None
            if key:
                obj[key] = value
        if row_filter(obj):
            objects.append(obj)
    return objects


def resolve_row(
    row: RowInput,
    columns: Optional[Sequence[str]],
    sanitize: Sanitize,
) -> RowArray:
    """Turn a tagged input into the positional list sent to the remote.

    ``columns`` is only consulted for :class:`KeyedRow`. Columns without a
    matching key resolve to ``""``; explicit ``None`` values are kept so the
    remote leaves that cell unset.
    """

    if isinstance(row, PositionalRow):
        return [sanitize(value) for value in row.values]
    if isinstance(row, KeyedRow):
        if columns is None:
            raise AppendRejectedError("Unable to add a keyed row without column names")
        lowered = {str(key).lower(): value for key, value in row.values.items()}
        return [sanitize(lowered.get(str(column).lower(), "")) for column in columns]
    raise AppendRejectedError(
        f"Unable to add {row!r}: expected PositionalRow or KeyedRow"
    )


__all__ = [
    "InputValue",
    "KeyTransform",
    "KeyedRow",
    "PositionalRow",
    "RowArray",
    "RowFilter",
    "RowInput",
    "RowObject",
    "Sanitize",
    "header_cells",
    "resolve_row",
    "sanitize_rows",
    "to_objects",
]
