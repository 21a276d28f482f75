"""
Manual override maps (copy-on-write).

Every mutation returns a NEW map and leaves the source map untouched, so a
caller can keep old snapshots for undo and detect changes by identity.

- OverrideMap: (SKU key, month key) -> order quantity chosen by the planner
- WeeklyOverrideMap: SKU key -> per-week-block quantities of the current month

Serialization to/from "SKU|YYYY_MM" pairs happens only at the persistence
boundary (to_pairs / from_pairs).
"""
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from .numeric import is_quantity

CELL_SEPARATOR = "|"

Cell = Tuple[str, str]


class OverrideMap:
    """
    Immutable sparse map of manual monthly orders.

    Raises:
        ValueError: If a cell value is not a real number (bools and NaN included)
    """

    __slots__ = ("_cells",)

    def __init__(self, cells: Optional[Dict[Cell, float]] = None):
        self._cells: Dict[Cell, float] = dict(cells) if cells else {}
        for (sku, month), value in self._cells.items():
            if not is_quantity(value):
                raise ValueError(f"Invalid override for {sku} {month}: {value!r} is not a number")

    # ============ Queries ============

    def __len__(self) -> int:
        return len(self._cells)

    def __iter__(self) -> Iterator[Cell]:
        return iter(self._cells)

    def __contains__(self, cell: object) -> bool:
        return cell in self._cells

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, OverrideMap):
            return NotImplemented
        return self._cells == other._cells

    def __repr__(self) -> str:
        return f"OverrideMap({self._cells!r})"

    @property
    def count(self) -> int:
        """Number of active overrides."""
        return len(self._cells)

    def get(self, sku: str, month: str) -> Optional[float]:
        return self._cells.get((sku, month))

    def is_overridden(self, sku: str, month: str) -> bool:
        return (sku, month) in self._cells

    def for_sku(self, sku: str) -> Dict[str, float]:
        """{month: value} of one SKU (empty when it has no overrides)."""
        return {month: value for (key, month), value in self._cells.items() if key == sku}

    def skus(self) -> List[str]:
        """SKU keys with at least one override, in insertion order."""
        seen = {}
        for key, _month in self._cells:
            seen.setdefault(key, None)
        return list(seen)

    # ============ Copy-on-write mutations ============

    def set(self, sku: str, month: str, value: Optional[float]) -> "OverrideMap":
        """
        New map with (sku, month) set to value.

        None means "no override" and removes the cell.
        """
        if value is None:
            return self.clear(sku, month)
        cells = dict(self._cells)
        cells[(sku, month)] = value
        return OverrideMap(cells)

    def set_many(self, sku: str, values: Dict[str, Optional[float]]) -> "OverrideMap":
        """New map with several months of one SKU set at once."""
        cells = dict(self._cells)
        for month, value in values.items():
            if value is None:
                cells.pop((sku, month), None)
            else:
                cells[(sku, month)] = value
        return OverrideMap(cells)

    def clear(self, sku: str, month: str) -> "OverrideMap":
        """New map without (sku, month); same map if the cell was not set."""
        if (sku, month) not in self._cells:
            return self
        cells = dict(self._cells)
        del cells[(sku, month)]
        return OverrideMap(cells)

    def clear_all(self) -> "OverrideMap":
        return OverrideMap()

    # ============ Persistence boundary ============

    def to_pairs(self) -> List[List]:
        """[["SKU|YYYY_MM", value], ...] for JSON storage."""
        return [[f"{sku}{CELL_SEPARATOR}{month}", value] for (sku, month), value in self._cells.items()]

    @classmethod
    def from_pairs(cls, pairs: Iterable[Sequence]) -> "OverrideMap":
        """
        Rebuild a map from to_pairs() output.

        Raises:
            ValueError: If a cell key has no separator, the pair is malformed
                or a value is not a number
        """
        cells = {}
        for pair in pairs:
            if len(pair) != 2:
                raise ValueError(f"Invalid override pair: {pair!r}")
            cell_key, value = pair
            sku, sep, month = str(cell_key).rpartition(CELL_SEPARATOR)
            if not sep or not sku:
                raise ValueError(f"Invalid override cell key: {cell_key!r}")
            if value is not None:
                cells[(sku, month)] = value
        return cls(cells)


class WeeklyOverrideMap:
    """Immutable map of per-SKU week-block quantities."""

    __slots__ = ("_weeks",)

    def __init__(self, weeks: Optional[Dict[str, Tuple[int, ...]]] = None):
        self._weeks: Dict[str, Tuple[int, ...]] = dict(weeks) if weeks else {}

    def __len__(self) -> int:
        return len(self._weeks)

    def __contains__(self, sku: object) -> bool:
        return sku in self._weeks

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, WeeklyOverrideMap):
            return NotImplemented
        return self._weeks == other._weeks

    def get(self, sku: str) -> Optional[Tuple[int, ...]]:
        return self._weeks.get(sku)

    def set(self, sku: str, values: Sequence[int]) -> "WeeklyOverrideMap":
        weeks = dict(self._weeks)
        weeks[sku] = tuple(values)
        return WeeklyOverrideMap(weeks)

    def update(self, other: Dict[str, Sequence[int]]) -> "WeeklyOverrideMap":
        weeks = dict(self._weeks)
        for sku, values in other.items():
            weeks[sku] = tuple(values)
        return WeeklyOverrideMap(weeks)

    def clear(self, sku: str) -> "WeeklyOverrideMap":
        if sku not in self._weeks:
            return self
        weeks = dict(self._weeks)
        del weeks[sku]
        return WeeklyOverrideMap(weeks)

    def clear_all(self) -> "WeeklyOverrideMap":
        return WeeklyOverrideMap()
