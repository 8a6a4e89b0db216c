"""Cell grid model and the workbook loader that produces it.

The grid is the only input the extraction core reads: a rectangular list of
rows, each cell carrying its raw value and an optional background colour.
"""

from __future__ import annotations

import io
import logging
import zipfile
from pathlib import Path
from typing import Any, BinaryIO

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException
from pydantic import BaseModel, Field

from strata.classifier.taxonomy import ErrorKind
from strata.telemetry.errors import ErrorCode, emit_structured_error

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = {".xlsx", ".xlsm"}


class WorkbookError(Exception):
    """Raised when a workbook cannot be turned into a grid."""

    def __init__(self, message: str, kind: ErrorKind) -> None:
        super().__init__(message)
        self.kind = kind


class Cell(BaseModel):
    value: Any = None
    color: str | None = None

    model_config = {"frozen": True}

    @property
    def text(self) -> str:
        if self.value is None:
            return ""
        return str(self.value).strip()

    @property
    def is_blank(self) -> bool:
        return self.text == ""


EMPTY_CELL = Cell()


class Grid(BaseModel):
    """A 2-D table of cells, row-major."""

    rows: list[list[Cell]] = Field(default_factory=list)
    sheet_name: str | None = None

    @classmethod
    def from_values(
        cls,
        rows: list[list[Any]],
        colors: list[list[str | None]] | None = None,
        sheet_name: str | None = None,
    ) -> Grid:
        """Build a grid from plain values and an optional parallel colour table."""
        built: list[list[Cell]] = []
        for r, row in enumerate(rows):
            color_row = colors[r] if colors and r < len(colors) else []
            built.append(
                [
                    Cell(value=value, color=color_row[c] if c < len(color_row) else None)
                    for c, value in enumerate(row)
                ]
            )
        return cls(rows=built, sheet_name=sheet_name)

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def column_count(self) -> int:
        return max((len(row) for row in self.rows), default=0)

    @property
    def is_empty(self) -> bool:
        return all(cell.is_blank for row in self.rows for cell in row)

    def cell(self, row: int, column: int) -> Cell:
        if 0 <= row < len(self.rows) and 0 <= column < len(self.rows[row]):
            return self.rows[row][column]
        return EMPTY_CELL

    def column(self, column: int, start_row: int = 0) -> list[Cell]:
        return [self.cell(r, column) for r in range(start_row, self.row_count)]


def fill_color(cell: Any) -> str | None:
    """Return a cell's solid fill colour as '#RRGGBB', 'theme:N' or 'indexed:N'."""
    fill = getattr(cell, "fill", None)
    if fill is None or not getattr(fill, "fill_type", None):
        return None

    color = fill.fgColor
    if color is None:
        return None
    if color.type == "rgb" and isinstance(color.rgb, str):
        rgb = color.rgb
        # openpyxl stores ARGB; drop the alpha channel
        return "#" + (rgb[2:] if len(rgb) == 8 else rgb).upper()
    if color.type == "theme":
        return f"theme:{color.theme}"
    if color.type == "indexed":
        return f"indexed:{color.indexed}"
    return None


def load_workbook_grid(
    source: str | Path | bytes | BinaryIO,
    filename: str | None = None,
    sheet: str | None = None,
) -> Grid:
    """Read the first (or named) worksheet of an .xlsx workbook into a Grid.

    Raises:
        WorkbookError: with kind UNSUPPORTED_FORMAT for non-workbook file names,
            FILE_CORRUPTED when the bytes cannot be parsed, and
            INSUFFICIENT_DATA when the workbook has no usable sheet.
    """
    name = filename or (str(source) if isinstance(source, (str, Path)) else None)
    if name is not None and Path(name).suffix.lower() not in SUPPORTED_EXTENSIONS:
        raise WorkbookError(
            f"Unsupported file format: {Path(name).suffix or name}",
            ErrorKind.UNSUPPORTED_FORMAT,
        )

    handle: str | Path | BinaryIO = io.BytesIO(source) if isinstance(source, bytes) else source

    try:
        workbook = openpyxl.load_workbook(handle, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, ValueError) as exc:
        emit_structured_error(
            logger,
            code=ErrorCode.WORKBOOK_READ_FAILED,
            message=str(exc),
            suppressed=False,
            details={"filename": name},
        )
        raise WorkbookError(
            f"File is corrupted or cannot be read: {exc}", ErrorKind.FILE_CORRUPTED
        ) from exc

    try:
        if sheet is not None:
            if sheet not in workbook.sheetnames:
                raise WorkbookError(
                    f"No data found: sheet {sheet!r} missing", ErrorKind.INSUFFICIENT_DATA
                )
            worksheet = workbook[sheet]
        elif workbook.sheetnames:
            worksheet = workbook[workbook.sheetnames[0]]
        else:
            raise WorkbookError(
                "No data found: workbook contains no sheets", ErrorKind.INSUFFICIENT_DATA
            )

        rows: list[list[Cell]] = []
        for row in worksheet.iter_rows():
            rows.append([Cell(value=c.value, color=fill_color(c)) for c in row])
    finally:
        workbook.close()

    logger.info("Loaded sheet %r with %d rows", worksheet.title, len(rows))
    return Grid(rows=rows, sheet_name=worksheet.title)
