"""
Tables: ordered collections of Records sharing one schema.
"""

from collections.abc import Iterator, Sequence
from typing import TYPE_CHECKING, Any, overload

from recordql.schema.record import Record

if TYPE_CHECKING:
    from recordql.schema.schema import Schema


class Table(Sequence[Record]):
    """
    The result of a multi-row read, or a typed batch built by the caller.

    Behaves as a read-only sequence of Records.
    """

    def __init__(self, schema: "Schema", records: Sequence[Record]) -> None:
        self._schema = schema
        self._records = tuple(records)

    @overload
    def __getitem__(self, index: int) -> Record: ...

    @overload
    def __getitem__(self, index: slice) -> "Table": ...

    def __getitem__(self, index: int | slice) -> "Record | Table":
        if isinstance(index, slice):
            return Table(self._schema, self._records[index])
        return self._records[index]

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[Record]:
        return iter(self._records)

    def __repr__(self) -> str:
        return f"<Table {self._schema.name} rows={len(self._records)}>"

    @property
    def schema(self) -> "Schema":
        return self._schema

    @property
    def columns(self) -> list[str]:
        """Column names present in the rows, in schema order."""
        if not self._records:
            return self._schema.field_names()
        return list(self._records[0].keys())

    def data(self) -> list[dict[str, Any]]:
        """Rows as plain dicts."""
        return [r.data() for r in self._records]

    def validate(self) -> "Table":
        """A new Table with every Record validated."""
        return Table(self._schema, [r.validate() for r in self._records])

    def is_valid(self) -> bool:
        return all(r.is_valid() for r in self._records)

    def invalid_rows(self) -> list[tuple[int, Record]]:
        """``(index, record)`` for every Record carrying errors."""
        return [(i, r) for i, r in enumerate(self._records) if not r.is_valid()]

    def first(self) -> Record | None:
        return self._records[0] if self._records else None
