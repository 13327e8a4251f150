"""In-memory CSV table with positional, named and primary-key row access."""

import csv
import logging
from pathlib import Path
from typing import Iterable, Iterator, Sequence, TextIO

from csv2store.errors import (
    DuplicateColumnError,
    EmptyInputError,
    MalformedRowError,
    NoPrimaryKeyConfiguredError,
    UnknownColumnError,
)

logger = logging.getLogger(__name__)

SEPARATOR = ","


class Row:
    """A single record bound to its owning Table.

    Values are positionally aligned to ``table.headers``. Rows are created by
    the Table; callers never construct them directly.
    """

    __slots__ = ("_table", "_values")

    def __init__(self, table: "Table", values: tuple[str, ...]):
        self._table = table
        self._values = values

    @property
    def table(self) -> "Table":
        return self._table

    @property
    def values(self) -> tuple[str, ...]:
        return self._values

    @property
    def primary_key(self) -> str | None:
        index = self._table.primary_key_index
        if index is None:
            return None
        return self._values[index]

    def __getitem__(self, key: int | str) -> str:
        if isinstance(key, str):
            return self._values[self._table.columns[key]]
        return self._values[key]

    def __len__(self) -> int:
        return len(self._values)

    def as_dict(self) -> dict[str, str]:
        return dict(zip(self._table.headers, self._values))

    def __repr__(self) -> str:
        return f"Row({list(self._values)!r})"


class Table:
    """Ordered collection of CSV rows.

    Built once from a header list, then rows are appended in file order.
    The header set never changes after construction. When a primary-key
    column is configured, an index maps each key value to its row
    (last row wins on duplicate keys).
    """

    def __init__(self, headers: Sequence[str], primary_key_column: str | None = None):
        headers = tuple(headers)
        if not headers:
            raise EmptyInputError("No headers found")

        columns: dict[str, int] = {}
        for i, header in enumerate(headers):
            if header in columns:
                raise DuplicateColumnError(header)
            columns[header] = i

        self._headers = headers
        self._columns = columns
        self._rows: list[Row] = []
        self._primary_key_index: int | None = None
        self._index: dict[str, Row] | None = None

        if primary_key_column is not None:
            if primary_key_column not in columns:
                raise UnknownColumnError(primary_key_column, role="primary key column")
            self._primary_key_index = columns[primary_key_column]
            self._index = {}

    @classmethod
    def from_headers(
        cls, headers: Iterable[str], primary_key_column: str | None = None
    ) -> "Table":
        """Create an empty table from an explicit header list."""
        return cls(list(headers), primary_key_column)

    @classmethod
    def parse(
        cls,
        source: TextIO,
        primary_key_column: str | None = None,
        strict: bool = True,
    ) -> "Table":
        """Parse a CSV text stream. The first non-blank record is the header row.

        With ``strict`` a row whose value count differs from the header count
        raises MalformedRowError; otherwise it is padded or truncated.
        """
        reader = csv.reader(source, delimiter=SEPARATOR)

        header_row = None
        for record in reader:
            if record:
                header_row = record
                break
        if header_row is None:
            raise EmptyInputError("CSV file is empty")

        table = cls(header_row, primary_key_column)
        width = len(table.headers)
        for record in reader:
            if not record:
                continue
            if len(record) != width:
                if strict:
                    raise MalformedRowError(reader.line_num, width, len(record))
                logger.warning(
                    "Line %d has %d values, expected %d; %s",
                    reader.line_num,
                    len(record),
                    width,
                    "padding" if len(record) < width else "truncating",
                )
                record = (record + [""] * width)[:width]
            table._add(tuple(record))
        return table

    @classmethod
    def from_path(
        cls,
        path: str | Path,
        primary_key_column: str | None = None,
        strict: bool = True,
        encoding: str = "utf-8-sig",
    ) -> "Table":
        """Open and parse a CSV file. A leading UTF-8 byte-order mark is dropped."""
        with open(path, newline="", encoding=encoding) as f:
            return cls.parse(f, primary_key_column, strict)

    def _add(self, values: tuple[str, ...]) -> Row:
        row = Row(self, values)
        self._rows.append(row)
        if self._index is not None:
            self._index[values[self._primary_key_index]] = row
        return row

    def append(self, rows_of_values: Iterable[Iterable[str]]) -> None:
        """Append rows built from raw value sequences."""
        width = len(self._headers)
        for values in rows_of_values:
            values = tuple(values)
            if len(values) != width:
                raise MalformedRowError(None, width, len(values))
            self._add(values)

    @property
    def headers(self) -> tuple[str, ...]:
        return self._headers

    @property
    def columns(self) -> dict[str, int]:
        return self._columns

    @property
    def primary_key_index(self) -> int | None:
        return self._primary_key_index

    @property
    def row_count(self) -> int:
        return len(self._rows)

    def __len__(self) -> int:
        return len(self._rows)

    def __iter__(self) -> Iterator[Row]:
        return iter(self._rows)

    def __getitem__(self, index: int) -> Row:
        return self._rows[index]

    def row(self, index: int) -> Row:
        return self._rows[index]

    def lookup(self, primary_key: str) -> Row | None:
        """Return the row whose primary-key value is ``primary_key``, if any."""
        if self._index is None:
            raise NoPrimaryKeyConfiguredError()
        return self._index.get(primary_key)

    def save(self, path: str | Path) -> None:
        """Write headers and rows back to a comma-separated file."""
        with open(path, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f, delimiter=SEPARATOR)
            writer.writerow(self._headers)
            writer.writerows(row.values for row in self._rows)
