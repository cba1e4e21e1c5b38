"""
Book CSV parser.

Reads bulk-import uploads in the ``title,author,isbn,publishedDate`` layout.
The header row is optional and detected from its first cell.
"""

import csv
import io
from dataclasses import dataclass

from library_api.core.exceptions import FileProcessingError

EXPECTED_COLUMNS = ["title", "author", "isbn", "publishedDate"]

# First-cell values that mark a header row
HEADER_MARKERS = {"title", "book"}


@dataclass
class CSVRow:
    """A single data row from an upload."""

    row: int  # 1-based, counting from the first data row
    cells: list[str]

    @property
    def raw_data(self) -> str:
        return ",".join(self.cells)


class BookCSVParser:
    """Parser for book bulk-import CSV files."""

    def __init__(self, content: bytes, filename: str | None = None):
        """
        Initialize parser with CSV content.

        Args:
            content: Raw bytes of the uploaded file
            filename: Original file name, reported back in errors
        """
        self.content = content
        self.filename = filename
        self.has_header = False

    def parse(self) -> list[CSVRow]:
        """
        Parse every data row of the upload.

        Raises:
            FileProcessingError: if the file is empty, not valid UTF-8 text,
                or not parseable as CSV.
        """
        text = self._decode_content()

        try:
            records = [
                cells
                for cells in csv.reader(io.StringIO(text), strict=True)
                if any(cell.strip() for cell in cells)
            ]
        except csv.Error as e:
            raise FileProcessingError(f"Failed to parse CSV file: {e}", self.filename) from e

        if not records:
            raise FileProcessingError("CSV file is empty", self.filename)

        self.has_header = is_header_row(records[0])
        if self.has_header:
            records = records[1:]

        return [CSVRow(row=index, cells=cells) for index, cells in enumerate(records, start=1)]

    def _decode_content(self) -> str:
        """Decode as UTF-8, dropping a leading byte order mark if present."""
        try:
            return self.content.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise FileProcessingError(
                f"Failed to read CSV file: not valid UTF-8 text ({e.reason})",
                self.filename,
            ) from e


def is_header_row(cells: list[str]) -> bool:
    return bool(cells) and cells[0].strip().lower() in HEADER_MARKERS


def parse_book_csv(content: bytes, filename: str | None = None) -> list[CSVRow]:
    """Convenience wrapper around BookCSVParser.parse()."""
    return BookCSVParser(content, filename).parse()
