from __future__ import annotations

import csv
import io
from typing import Iterable, Sequence


def to_csv(header: Sequence[str], rows: Iterable[Sequence]) -> str:
    """Comma-separated text; fields are quoted only when they need it."""
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(header)
    for row in rows:
        writer.writerow(["" if value is None else value for value in row])
    return buf.getvalue().rstrip("\n")
