# csv_export.py
import csv
import io
from datetime import date
from typing import Iterable, Sequence

from fastapi import Response


def _cell(value) -> str:
    if value is None:
        return ""
    return str(value).replace("\r\n", " ").replace("\n", " ").replace("\r", " ")


def rows_to_csv(headers: Sequence[str], rows: Iterable[Sequence]) -> str:
    """Header line plus one line per row, every field quoted."""
    output = io.StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(headers)
    for row in rows:
        writer.writerow([_cell(v) for v in row])
    return output.getvalue()


def csv_response(filename_prefix: str, headers: Sequence[str], rows: Iterable[Sequence]) -> Response:
    content = rows_to_csv(headers, rows)
    filename = f"{filename_prefix}_{date.today().isoformat()}.csv"
    return Response(
        content=content.encode('utf-8-sig'),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )
