"""
CSV upload parsing and validation.

The whole file is decoded and parsed before the ingestion pipeline touches
the database, so a malformed upload never causes a partial write.
"""

import csv
import io

MAX_CSV_ROWS = 500_000
MAX_CSV_COLUMNS = 100


class CsvValidationError(ValueError):
    """Upload rejected before any state was changed."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("; ".join(errors))


def read_csv_records(
    file_content: bytes,
    max_bytes: int | None = None,
) -> tuple[list[str], list[dict[str, str]]]:
    """Decode and parse an uploaded CSV into (headers, rows).

    Blank lines are skipped. Raises CsvValidationError for oversized,
    binary, empty or structurally malformed files.
    """
    if max_bytes is not None and len(file_content) > max_bytes:
        raise CsvValidationError([
            f"File size ({len(file_content) / 1024 / 1024:.1f} MB) exceeds maximum "
            f"({max_bytes / 1024 / 1024:.0f} MB)"
        ])

    # Attempt decode: reject binary content
    try:
        text = file_content.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise CsvValidationError(["File contains binary content and is not a valid UTF-8 CSV"]) from None
    if "\x00" in text:
        raise CsvValidationError(["File contains binary content and is not a valid UTF-8 CSV"])

    reader = csv.reader(io.StringIO(text), strict=True)
    try:
        headers = next(reader, None)
        if not headers or not any(h.strip() for h in headers):
            raise CsvValidationError(["CSV file is empty (no header row)"])
        headers = [h.strip() for h in headers]
        if len(headers) > MAX_CSV_COLUMNS:
            raise CsvValidationError([f"CSV has {len(headers)} columns, maximum is {MAX_CSV_COLUMNS}"])

        rows: list[dict[str, str]] = []
        for row in reader:
            if not any(cell.strip() for cell in row):
                continue
            if len(row) > len(headers):
                raise CsvValidationError([
                    f"Row {reader.line_num} has {len(row)} fields, header has {len(headers)}"
                ])
            rows.append(dict(zip(headers, row)))
            if len(rows) > MAX_CSV_ROWS:
                raise CsvValidationError([f"CSV has more than {MAX_CSV_ROWS:,} rows"])
    except csv.Error as exc:
        raise CsvValidationError([f"Malformed CSV at line {reader.line_num}: {exc}"]) from exc

    return headers, rows
