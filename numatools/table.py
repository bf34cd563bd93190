"""Text tables with per-column widths, justification and line folding."""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass
from typing import Union

SMALL_BUF_SIZE = 128
USUAL_GUTTER_WIDTH = 1


class Justify(enum.IntEnum):
    """Horizontal placement of a cell's text inside its column."""

    LEFT = 1
    RIGHT = 2
    CENTER = 3


class CellType(enum.Enum):
    """Kind of value a cell holds."""

    NULL = 0
    LONG = 1
    DOUBLE = 2
    STRING = 3
    CHAR8 = 4
    REPCHAR = 5


class _Flag(enum.IntFlag):
    SEEN_DATA = 1 << 2
    NON_ZERO_DATA = 1 << 3
    ALWAYS_SHOW = 1 << 4


@dataclass
class Cell:
    """One table cell: its type and value."""

    type: CellType = CellType.NULL
    value: Union[None, int, float, str] = None


def _is_nonzero(cell: Cell) -> bool:
    if cell.type is CellType.DOUBLE:
        value = float(cell.value)
        # A negative zero still has bits set, so it counts as data.
        return value != 0.0 or math.copysign(1.0, value) < 0
    if cell.type is CellType.LONG:
        return int(cell.value) != 0
    if cell.type is CellType.CHAR8:
        return bool(cell.value)
    if cell.type is CellType.STRING:
        return cell.value is not None
    return False


def _cell_text(cell: Cell, max_width: int, decimal_places: int) -> str:
    if cell.type is CellType.NULL:
        text = ""
    elif cell.type is CellType.LONG:
        text = str(int(cell.value))
    elif cell.type is CellType.DOUBLE:
        text = f"{float(cell.value):.{decimal_places}f}"
    elif cell.type is CellType.STRING:
        text = "" if cell.value is None else str(cell.value)
    elif cell.type is CellType.CHAR8:
        text = str(cell.value)[:8]
    else:
        text = str(cell.value) * max(0, max_width - USUAL_GUTTER_WIDTH)
    return text[: max(0, min(max_width, SMALL_BUF_SIZE - 1))]


def _justified(text: str, justify: Justify, width: int) -> str:
    pad = max(0, width - len(text))
    if justify is Justify.LEFT:
        result = text + " " * pad
    elif justify is Justify.RIGHT:
        result = " " * pad + text
    else:
        left = (pad + 1) // 2
        result = " " * left + text + " " * (pad - left)
    return result[: max(0, width)]


class Table:
    """A grid of header and data cells rendered as folded fixed-width text."""

    def __init__(self, header_rows: int, header_cols: int, data_rows: int, data_cols: int):
        if min(header_rows, header_cols, data_rows, data_cols) < 0:
            raise ValueError("table dimensions must not be negative")
        self.header_rows = header_rows
        self.header_cols = header_cols
        self.data_rows = data_rows
        self.data_cols = data_cols
        self._cells = [[Cell() for _ in range(self.total_cols)] for _ in range(self.total_rows)]
        self.row_order = list(range(self.total_rows))
        self._row_flags = [_Flag(0)] * self.total_rows
        self._col_flags = [_Flag(0)] * self.total_cols
        self.col_width = [0] * self.total_cols
        self.col_justify = [Justify.CENTER] * self.total_cols
        self.col_decimal_places = [0] * self.total_cols

    @property
    def total_rows(self) -> int:
        return self.header_rows + self.data_rows

    @property
    def total_cols(self) -> int:
        return self.header_cols + self.data_cols

    def _check_row(self, row: int) -> None:
        if not 0 <= row < self.total_rows:
            raise IndexError(f"row {row} out of range")

    def _check_col(self, col: int) -> None:
        if not 0 <= col < self.total_cols:
            raise IndexError(f"column {col} out of range")

    def _cell(self, row: int, col: int) -> Cell:
        self._check_row(row)
        self._check_col(col)
        return self._cells[row][col]

    def __getitem__(self, key: tuple[int, int]) -> Cell:
        row, col = key
        return self._cell(row, col)

    def set_string(self, row: int, col: int, text: str) -> None:
        cell = self._cell(row, col)
        cell.type, cell.value = CellType.STRING, text

    def set_repchar(self, row: int, col: int, char: str) -> None:
        """Fill the cell with ``char`` repeated to one less than the column width."""
        if len(char) != 1:
            raise ValueError("a repeated character must be a single character")
        cell = self._cell(row, col)
        cell.type, cell.value = CellType.REPCHAR, char

    def set_double(self, row: int, col: int, value: float) -> None:
        cell = self._cell(row, col)
        cell.type, cell.value = CellType.DOUBLE, float(value)

    def add_double(self, row: int, col: int, value: float) -> None:
        cell = self._cell(row, col)
        current = float(cell.value) if cell.type is CellType.DOUBLE else 0.0
        cell.type, cell.value = CellType.DOUBLE, current + float(value)

    def zero_data(self) -> None:
        """Set every data cell to a double zero."""
        for row in range(self.header_rows, self.total_rows):
            for col in range(self.header_cols, self.total_cols):
                self._cells[row][col] = Cell(CellType.DOUBLE, 0.0)

    def set_col_width(self, col: int, width: int) -> None:
        self._check_col(col)
        self.col_width[col] = min(int(width), SMALL_BUF_SIZE - 1)

    def set_col_justification(self, col: int, justify: Justify) -> None:
        self._check_col(col)
        self.col_justify[col] = Justify(justify)

    def set_col_decimal_places(self, col: int, places: int) -> None:
        self._check_col(col)
        self.col_decimal_places[col] = int(places)

    def set_row_always_show(self, row: int) -> None:
        self._check_row(row)
        self._row_flags[row] |= _Flag.ALWAYS_SHOW

    def auto_set_col_width(self, col: int, min_width: int, max_width: int) -> None:
        """Size a column to its widest text plus a gutter, within the given bounds."""
        self._check_col(col)
        width = min_width
        for row_cells in self._cells:
            cell = row_cells[col]
            if cell.type is CellType.REPCHAR:
                continue
            text = _cell_text(cell, max_width, self.col_decimal_places[col])
            width = max(width, len(text))
        self.col_width[col] = min(width + USUAL_GUTTER_WIDTH, max_width)

    def sort_rows_descending(self, start_row: int, stop_row: int, col: int) -> None:
        """Reorder display positions ``start_row..stop_row`` by descending value in ``col``."""
        self._check_col(col)
        if start_row > stop_row:
            return
        self._check_row(start_row)
        self._check_row(stop_row)

        def key(position: int) -> float:
            cell = self._cells[self.row_order[position]][col]
            return float(cell.value) if cell.type is CellType.DOUBLE else 0.0

        order = self.row_order
        for ix in range(start_row, stop_row + 1):
            biggest = max(range(ix, stop_row + 1), key=key)
            if biggest != ix:
                order[ix], order[biggest] = order[biggest], order[ix]

    def _mark_data(self) -> tuple[bool, bool]:
        seen_any = nonzero_any = False
        for row in range(self.header_rows, self.total_rows):
            for col in range(self.header_cols, self.total_cols):
                cell = self._cells[row][col]
                if cell.type in (CellType.NULL, CellType.REPCHAR):
                    continue
                seen_any = True
                self._row_flags[row] |= _Flag.SEEN_DATA
                self._col_flags[col] |= _Flag.SEEN_DATA
                if _is_nonzero(cell):
                    nonzero_any = True
                    self._row_flags[row] |= _Flag.NON_ZERO_DATA
                    self._col_flags[col] |= _Flag.NON_ZERO_DATA
        return seen_any, nonzero_any

    def _display_cell(self, row: int, col: int) -> str:
        width = self.col_width[col]
        text = _cell_text(self._cells[row][col], width, self.col_decimal_places[col])
        return _justified(text, self.col_justify[col], width)

    def render(
        self,
        screen_width: int,
        show_unseen_rows: bool = False,
        show_unseen_cols: bool = False,
        show_zero_rows: bool = True,
        show_zero_cols: bool = True,
    ) -> str:
        """Return the table as text, folding columns into sections of ``screen_width``."""
        seen_any, nonzero_any = self._mark_data()
        if not seen_any:
            return "Table has no data.\n"
        if not nonzero_any and not show_zero_rows and not show_zero_cols:
            return "Table has no non-zero data.\n"

        def col_shown(col: int) -> bool:
            flags = self._col_flags[col]
            return bool(flags & _Flag.ALWAYS_SHOW) or (
                (show_unseen_cols or bool(flags & _Flag.SEEN_DATA))
                and (show_zero_cols or bool(flags & _Flag.NON_ZERO_DATA))
            )

        def row_shown(row: int) -> bool:
            flags = self._row_flags[row]
            if row < self.header_rows or flags & _Flag.ALWAYS_SHOW:
                return True
            if not show_unseen_rows and not flags & _Flag.SEEN_DATA:
                return False
            return show_zero_rows or bool(flags & _Flag.NON_ZERO_DATA)

        out: list[str] = []
        data_col = self.header_cols
        first_section = True
        while data_col < self.total_cols:
            if not col_shown(data_col):
                data_col += 1
                continue
            if not first_section:
                out.append("\n")
            first_section = False
            next_col = None
            for row in self.row_order:
                if not row_shown(row):
                    continue
                parts = [self._display_cell(row, col) for col in range(self.header_cols)]
                line_width = sum(self.col_width[: self.header_cols])
                col = data_col
                while True:
                    if col_shown(col):
                        parts.append(self._display_cell(row, col))
                        line_width += self.col_width[col]
                    col += 1
                    if col >= self.total_cols or line_width + self.col_width[col] > screen_width:
                        break
                out.append("".join(parts) + "\n")
                next_col = col
            if next_col is None:
                break
            data_col = next_col
        return "".join(out)