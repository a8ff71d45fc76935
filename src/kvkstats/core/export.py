"""Spreadsheet exports -- registration dump and full leaderboard as .xlsx bytes."""

from __future__ import annotations

import io
import logging
from collections.abc import Sequence
from typing import Any

from openpyxl import Workbook
from openpyxl.utils import get_column_letter

logger = logging.getLogger(__name__)

NUMBER_FORMAT = "#,##0"

# Header names are matched case-insensitively.
REGISTRATION_NUMBER_COLUMNS: tuple[str, ...] = (
    "last recorded power",
    "target kp",
    "target dead troops",
)
REGISTRATION_ID_COLUMN = "governo id"

REGISTRATION_SHEET_TITLE = "Registration Data"
REGISTRATION_FILENAME = "List DKP Target Players.xlsx"

LEADERBOARD_COLUMN_WIDTHS = (5, 15, 30, 20)


def column_index(headers: Sequence[Any], name: str) -> int:
    """0-based index of ``name`` in ``headers`` (case-insensitive), or -1."""
    wanted = name.lower()
    for i, header in enumerate(headers):
        if header is not None and str(header).lower() == wanted:
            return i
    return -1


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def _to_bytes(wb: Workbook) -> bytes:
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def build_registration_workbook(rows: Sequence[Sequence[Any]] | None) -> bytes | None:
    """Render the registration grid as an .xlsx file.

    ``rows[0]`` is the header row. Designated numeric columns get a
    thousands-separator format; the governor id column is written as text so
    long ids are not shown in scientific notation. Returns None when there
    are no data rows.
    """
    if not rows or len(rows) <= 1:
        return None

    headers = list(rows[0])
    number_cols = [
        idx
        for idx in (column_index(headers, name) for name in REGISTRATION_NUMBER_COLUMNS)
        if idx != -1
    ]
    id_col = column_index(headers, REGISTRATION_ID_COLUMN)
    if id_col == -1:
        logger.warning("registration_export_id_column_missing column=%s", REGISTRATION_ID_COLUMN)

    wb = Workbook()
    ws = wb.active
    ws.title = REGISTRATION_SHEET_TITLE
    ws.append(headers)

    for row_number, row in enumerate(rows[1:], start=2):
        ws.append(list(row))
        for col in number_cols:
            cell = ws.cell(row=row_number, column=col + 1)
            if _is_number(cell.value):
                cell.number_format = NUMBER_FORMAT
        if id_col != -1:
            cell = ws.cell(row=row_number, column=id_col + 1)
            if cell.value is not None:
                if _is_number(cell.value):
                    cell.value = _id_text(cell.value)
                cell.data_type = "s"
                cell.number_format = "@"

    return _to_bytes(wb)


def _id_text(value: int | float) -> str:
    # 12345678.0 -> "12345678"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def build_leaderboard_workbook(
    entries: Sequence[dict[str, Any]],
    ranking_type: str,
    value_label: str,
) -> bytes:
    """Full leaderboard as Rank | Governor ID | Nickname | <value_label>."""
    wb = Workbook()
    ws = wb.active
    ws.title = f"Leaderboard {ranking_type}"[:31]
    ws.append(["Rank", "Governor ID", "Nickname", value_label])
    for entry in entries:
        gov_id = entry.get("id")
        ws.append(
            [
                entry.get("rank"),
                str(gov_id) if gov_id is not None else "",
                entry.get("nickname") or f"ID: {gov_id}",
                entry.get("value"),
            ]
        )
    for i, width in enumerate(LEADERBOARD_COLUMN_WIDTHS, start=1):
        ws.column_dimensions[get_column_letter(i)].width = width
    return _to_bytes(wb)
