"""
Forward-only cursor over a query's result rows.

    with Select('select id, name from person where team = ?', args=['red']) as q:
        q.execute()
        while q.next():
            print(q.get_int(1), q.get_string('name'))

Typed getters take a 1-based column index or a column name (matched
case-insensitively) and follow the coercion null policy: numeric and boolean
getters return zero values, others None. ``execute(precache=True)`` reads
every row up front and releases the statement and connection at once, so
the rows can be walked after the connection is back in the pool.
"""
import csv
import io
import logging
from collections.abc import Callable, Iterator
from typing import Any, Self

from sqlhandle import coercion
from sqlhandle.exceptions import ExecutionFailed, StatementError
from sqlhandle.options import iterdict_data_loader
from sqlhandle.outcome import ResultSet
from sqlhandle.statement import StatementHandle
from sqlhandle.types import Column, columns_from_cursor_description

from libb import attrdict

__all__ = ['ResultCursor', 'Select']

logger = logging.getLogger(__name__)


class ResultCursor(StatementHandle):
    """Query handle exposing the current row of its result.

    Args:
        row_mapper: Optional callable turning the cursor (positioned on a
            row) into an application object
    """

    def __init__(self, sql: str | None = None, source_name: str | None = None, *,
                 row_mapper: Callable[['ResultCursor'], Any] | None = None, **kwargs):
        self._columns: tuple[Column, ...] | None = None
        self._positions: dict[str, int] = {}
        self._row: tuple | None = None
        self._buffer: Iterator[tuple] | None = None
        self._row_mapper = row_mapper
        super().__init__(sql, source_name, **kwargs)

    def execute(self, precache: bool = False) -> Self:
        """Execute the query.

        Args:
            precache: Read all rows now and release the statement and
                connection before returning
        """
        super().execute()
        if precache and self._columns is not None:
            try:
                rows = self._statement.fetchall()
            except Exception as exc:
                self._discard_statement()
                raise ExecutionFailed(f'Reading results failed: {exc}', cause=exc) from exc
            self._buffer = iter([tuple(row) for row in rows])
            logger.debug(f'Precached {len(rows)} row(s)')
            self._release(commit=True)
        return self

    def _run(self, strategy, cursor, params, out_positions):
        self._execute_sql(strategy, cursor, params)
        self._capture_columns(strategy, cursor)
        return ResultSet(self._columns or ())

    def _capture_columns(self, strategy, cursor) -> None:
        self._row = None
        self._buffer = None
        self._columns = columns_from_cursor_description(cursor, strategy.get_type_map())
        self._positions = {}
        for i, col in enumerate(self._columns or ()):
            self._positions.setdefault(str(col.name).lower(), i)

    def _clear_results(self) -> None:
        self._columns = None
        self._positions = {}
        self._row = None
        self._buffer = None

    def next(self) -> bool:
        """Advance to the next row; False once the rows are exhausted."""
        if self._buffer is not None:
            self._row = next(self._buffer, None)
        elif self._statement is not None and self._columns is not None:
            row = self._statement.fetchone()
            self._row = tuple(row) if row is not None else None
        else:
            self._row = None
        return self._row is not None

    @property
    def row(self) -> tuple | None:
        """The current row as the driver returned it."""
        return self._row

    @property
    def columns(self) -> tuple[Column, ...] | None:
        return self._columns

    @property
    def column_count(self) -> int:
        """Number of result columns, -1 when there is no result schema."""
        return len(self._columns) if self._columns is not None else -1

    def column_name(self, index: int) -> str | None:
        """Name of the 1-based column ``index``."""
        if self._columns is None or not 1 <= index <= len(self._columns):
            return None
        return self._columns[index - 1].name

    def _position(self, column: int | str) -> int:
        if isinstance(column, str):
            try:
                return self._positions[column.lower()]
            except KeyError:
                raise KeyError(f'No column named {column!r}') from None
        if self._columns is None or not 1 <= column <= len(self._columns):
            raise IndexError(f'Column index {column} out of range')
        return column - 1

    def _value(self, column: int | str) -> Any:
        if self._row is None:
            return None
        return self._row[self._position(column)]

    def get_object(self, column: int | str) -> Any:
        return coercion.to_object(self._value(column))

    def get_string(self, column: int | str) -> str | None:
        return coercion.to_str(self._value(column))

    def get_int(self, column: int | str) -> int:
        return coercion.to_int(self._value(column))

    def get_float(self, column: int | str) -> float:
        return coercion.to_float(self._value(column))

    def get_decimal(self, column: int | str):
        return coercion.to_decimal(self._value(column))

    def get_bool(self, column: int | str) -> bool:
        return coercion.to_bool(self._value(column))

    def get_datetime(self, column: int | str):
        return coercion.to_datetime(self._value(column))

    def get_date(self, column: int | str):
        return coercion.to_date(self._value(column))

    def get_bytes(self, column: int | str) -> bytes | None:
        return coercion.to_bytes(self._value(column))

    def _strings(self) -> list[str]:
        return [self.get_string(i) or '' for i in range(1, self.column_count + 1)]

    def get_line(self, delimiter: str = ',') -> str:
        """Current row as text, NULL columns rendered empty."""
        return delimiter.join(self._strings())

    def get_line_csv(self) -> str:
        """Current row as one CSV line with every field quoted."""
        buf = io.StringIO()
        csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator='').writerow(self._strings())
        return buf.getvalue()

    def get_row(self) -> attrdict:
        """Current row keyed by column name."""
        if self._row is None or self._columns is None:
            return attrdict()
        return attrdict(zip(Column.get_names(self._columns), self._row))

    def set_row_mapper(self, row_mapper: Callable[['ResultCursor'], Any] | None) -> Self:
        self._row_mapper = row_mapper
        return self

    def get_mapped_object(self) -> Any:
        """Apply the row mapper to the current row."""
        if self._row_mapper is None:
            raise StatementError(f'{self!r} has no row mapper')
        return self._row_mapper(self)

    def __iter__(self) -> Iterator[Any]:
        """Yield remaining rows, mapped when a row mapper is set."""
        while self.next():
            yield self.get_mapped_object() if self._row_mapper is not None else self.get_row()

    def fetch(self, data_loader: Callable | None = None, **kwargs) -> Any:
        """Load every remaining row through ``data_loader``.

        The loader receives a list of dicts and the column metadata
        (`iterdict_data_loader` by default, `pandas_data_loader` for a
        DataFrame).
        """
        data_loader = data_loader or iterdict_data_loader
        names = Column.get_names(self._columns or ())
        data = []
        while self.next():
            data.append(dict(zip(names, self._row)))
        return data_loader(data, self._columns or (), **kwargs)


Select = ResultCursor
