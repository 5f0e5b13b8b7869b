import csv
import io
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from app.core.errors import InvalidRequest, UnsupportedFormatError

PARQUET_MAGIC = b"PAR1"
CSV = "csv"
PARQUET = "parquet"

# Large enough for any single field of an upload; fits a C long everywhere.
CSV_FIELD_SIZE_LIMIT = 2**31 - 1


class FileReadError(InvalidRequest):
    def __init__(self, message: str) -> None:
        super().__init__("READ_ERROR", message)


class UnsupportedFileType(InvalidRequest):
    def __init__(self) -> None:
        super().__init__("UNSUPPORTED_FILE_TYPE", "only .csv or .parquet files are allowed")


def detect_file_type(stream: BinaryIO, filename: str = "") -> str:
    """Classify an upload from its first four bytes.

    The stream is rewound to the start before returning.
    """
    try:
        head = stream.read(4)
        stream.seek(0)
    except OSError as exc:
        raise FileReadError(str(exc)) from exc
    if len(head) < 4:
        raise FileReadError("unexpected EOF")

    if head == PARQUET_MAGIC:
        return PARQUET
    if ".csv" in Path(filename).suffix.lower() or head[0] != PARQUET_MAGIC[0]:
        return CSV
    raise UnsupportedFileType()


@dataclass(slots=True)
class RecordResult:
    row_number: int
    fields: list[str] | None
    raw: str
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class RecordSource:
    """Reads one uploaded file as a sequence of numbered records."""

    file_type: str = ""

    def __init__(self, stream: BinaryIO) -> None:
        self.stream = stream

    def records(self) -> Iterator[RecordResult]:
        raise NotImplementedError


class _LineTracker:
    def __init__(self, lines: Iterator[str]) -> None:
        self._lines = lines
        self.consumed: list[str] = []

    def __iter__(self) -> "_LineTracker":
        return self

    def __next__(self) -> str:
        line = next(self._lines)
        self.consumed.append(line)
        return line

    def take(self) -> str:
        text = "".join(self.consumed).rstrip("\r\n")
        self.consumed = []
        return text


class CsvRecordSource(RecordSource):
    """Delimited text; the first record fixes the expected field count.

    Quoting is strict except for a bare quote inside an unquoted field
    (`a"b,c`), which the csv module keeps as a literal character and the
    record parses.
    """

    file_type = CSV

    def records(self) -> Iterator[RecordResult]:
        text = io.TextIOWrapper(self.stream, encoding="utf-8", errors="replace", newline="")
        tracker = _LineTracker(iter(text))
        csv.field_size_limit(CSV_FIELD_SIZE_LIMIT)
        reader = csv.reader(tracker, strict=True)
        expected_fields: int | None = None
        row_number = 0
        try:
            while True:
                try:
                    fields = next(reader)
                except StopIteration:
                    return
                except csv.Error as exc:
                    row_number += 1
                    yield RecordResult(row_number, None, tracker.take(), f"record on line {reader.line_num}: {exc}")
                    continue

                raw = tracker.take()
                if not fields:
                    continue
                row_number += 1
                if expected_fields is None:
                    expected_fields = len(fields)
                elif len(fields) != expected_fields:
                    yield RecordResult(
                        row_number,
                        None,
                        ",".join(fields),
                        f"record on line {reader.line_num}: wrong number of fields",
                    )
                    continue
                yield RecordResult(row_number, fields, raw)
        finally:
            # the caller owns the underlying handle
            text.detach()


class ParquetRecordSource(RecordSource):
    file_type = PARQUET

    def records(self) -> Iterator[RecordResult]:
        raise UnsupportedFormatError("parquet uploads are detected but cannot be streamed row by row")


_SOURCES: dict[str, type[RecordSource]] = {
    CSV: CsvRecordSource,
    PARQUET: ParquetRecordSource,
}


def register_source(file_type: str, source_cls: type[RecordSource]) -> None:
    _SOURCES[file_type] = source_cls


def open_record_source(file_type: str, stream: BinaryIO) -> RecordSource:
    source_cls = _SOURCES.get(file_type)
    if source_cls is None:
        raise UnsupportedFormatError(f"no record source for file type {file_type!r}")
    return source_cls(stream)
