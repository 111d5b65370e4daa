"""
Inverted index over a tabular snapshot.
"""

from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Sequence, Set


def normalize(value: Any) -> str:
    """Lowercased, stripped string form used for both cells and criteria."""
    return str(value).strip().lower()


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


class SearchIndex:
    """Column -> normalized value -> set of 1-indexed data-row numbers.

    Built once from a snapshot (header row followed by data rows) and never
    patched; a write to the underlying range means building a new index.
    """

    def __init__(self):
        self.headers: List[str] = []
        self.rows: List[Sequence[Any]] = []
        self._columns: Dict[str, Dict[str, Set[int]]] = {}

    @classmethod
    def from_snapshot(cls, snapshot: Sequence[Sequence[Any]]) -> "SearchIndex":
        index = cls()
        index.build(snapshot)
        return index

    def build(self, snapshot: Sequence[Sequence[Any]]) -> "SearchIndex":
        """(Re)build from ``snapshot``; the first row holds the column names."""
        self._columns = {}
        self.headers = [str(header).strip() for header in snapshot[0]] if snapshot else []
        self.rows = list(snapshot[1:]) if snapshot else []

        for position, header in enumerate(self.headers):
            if not header:
                continue
            column = self._columns.setdefault(header, {})
            for row_number, row in enumerate(self.rows, start=1):
                if position >= len(row) or is_blank(row[position]):
                    continue
                column.setdefault(normalize(row[position]), set()).add(row_number)
        return self

    def lookup(self, column: str, value: Any) -> FrozenSet[int]:
        """Rows whose ``column`` equals ``value`` after normalization."""
        values = self._columns.get(column)
        if values is None:
            return frozenset()
        return frozenset(values.get(normalize(value), ()))

    def query(self, criteria: Mapping[str, Any]) -> FrozenSet[int]:
        """Rows matching every criterion; empty criteria match nothing."""
        if not criteria:
            return frozenset()

        candidates = sorted((self.lookup(column, value) for column, value in criteria.items()), key=len)
        result: Optional[FrozenSet[int]] = None
        for rows in candidates:
            result = rows if result is None else result & rows
            if not result:
                return frozenset()
        return result

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def record(self, row_number: int) -> Dict[str, Any]:
        """The snapshot row ``row_number`` as ``{row, values}``."""
        row = self.rows[row_number - 1]
        values = {
            header: row[position] if position < len(row) else None
            for position, header in enumerate(self.headers)
            if header
        }
        return {"row": row_number, "values": values}

    def values(self, column: str) -> Dict[str, int]:
        """Distinct normalized values of ``column`` with their row counts."""
        return {value: len(rows) for value, rows in self._columns.get(column, {}).items()}

    def __contains__(self, column: str) -> bool:
        return column in self._columns
