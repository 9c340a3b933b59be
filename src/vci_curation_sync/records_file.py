from __future__ import annotations

import csv
from pathlib import Path
from typing import Union


def read_record_identifiers(path: Union[str, Path], *, column: str = "Variant") -> list[str]:
    """
    Read record identifiers from a CSV with a header row, one identifier per row in `column`.

    Blank cells are skipped; file order is kept (duplicates included; the reconciler de-duplicates).
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Variant file not found: {p}")

    with p.open(newline="", encoding="utf-8-sig") as f:
        reader = csv.DictReader(f)
        if reader.fieldnames is None or column not in reader.fieldnames:
            raise ValueError(f"Variant file {p} has no {column!r} column (found: {reader.fieldnames or []})")
        out: list[str] = []
        for row in reader:
            value = (row.get(column) or "").strip()
            if value:
                out.append(value)
    return out
