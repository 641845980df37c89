import os
import io
import csv
import json
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

PathLike = Union[str, Path]
Row = Dict[str, str]


def ensure_dir(path: PathLike) -> None:
    parent = os.path.dirname(os.path.abspath(path))
    if parent and not os.path.exists(parent):
        os.makedirs(parent, exist_ok=True)


def _warn(msg: str, cb: Optional[Callable[[str], None]]) -> None:
    if cb:
        cb(msg)
    else:
        print(msg)


def _cell(value: object) -> str:
    if value is None:
        return ""
    return str(value)


def encode_csv(columns: List[str], rows: Iterable[Row]) -> str:
    """
    Header line plus one line per row, "\n"-joined, no trailing newline.
    Values holding a comma, a double quote or a line break are quoted with inner quotes doubled.
    A row made of a single empty value is written as "" so it is not read back as a blank line.
    """
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(columns)
    for row in rows:
        writer.writerow([_cell(row.get(col, "")) for col in columns])
    return buf.getvalue()[:-1]


def decode_csv(text: str, progress: Optional[Callable[[str], None]] = None) -> Tuple[List[str], List[Row]]:
    """
    Parse edited CSV text back into (columns, rows), one physical line per record.

    Lines with an unbalanced double quote, and lines whose field count does not
    match the header, are dropped with a [WARN] line; they produce no row at all.
    A value holding a line break therefore cannot be read back. Values are
    whitespace-trimmed.
    """
    if text.startswith("\ufeff"):
        text = text[1:]

    header: Optional[List[str]] = None
    rows: List[Row] = []
    data_records = 0

    for line_num, line in enumerate(text.split("\n"), start=1):
        line = line.rstrip("\r")
        if not line.strip():
            continue
        if header is None:
            header = [h.replace('"', "").strip() for h in next(csv.reader([line]))]
            continue
        data_records += 1
        if line.count('"') % 2:
            _warn(f"[WARN] Row {line_num} has an unterminated quoted value — skipped", progress)
            continue
        record = next(csv.reader([line]))
        if len(record) != len(header):
            _warn(f"[WARN] Row {line_num} has {len(record)} values but expected {len(header)} — skipped",
                  progress)
            continue
        rows.append({col: val.strip() for col, val in zip(header, record)})

    if header is None or data_records == 0:
        raise ValueError("CSV file must have at least a header row and one data row")
    return header, rows


def write_csv_file(path: PathLike, columns: List[str], rows: Iterable[Row]) -> str:
    ensure_dir(path)
    content = encode_csv(columns, rows)
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(content)
    return str(path)


def read_csv_file(path: PathLike, progress: Optional[Callable[[str], None]] = None) -> Tuple[List[str], List[Row]]:
    if not os.path.exists(path):
        raise FileNotFoundError(f"Input file '{path}' does not exist.")
    with open(path, "r", encoding="utf-8", newline="") as f:
        content = f.read()
    return decode_csv(content, progress)


def write_json(path: PathLike, payload: object) -> str:
    ensure_dir(path)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, ensure_ascii=False)
    return str(path)


def results_path_for(input_path: PathLike) -> str:
    """variants-export.csv -> variants-export-import-results.json (same folder)"""
    p = Path(input_path)
    return str(p.with_name(f"{p.stem}-import-results.json"))
