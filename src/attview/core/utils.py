# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import io

import pandas as pd
from fastapi.responses import StreamingResponse

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def canon(s: str) -> str:
    """Canonicalise identifiers for comparisons (trim)."""
    return (s or "").strip()


def safe_next(url: str, default: str = "/") -> str:
    """Only allow local redirect targets."""
    u = (url or "").strip()
    if not u.startswith("/") or u.startswith("//") or "\\" in u:
        return default
    return u


def df_to_csv_stream(df: pd.DataFrame, filename: str = "") -> StreamingResponse:
    """Stream a dataframe as CSV without writing to disk."""
    buf = io.StringIO()
    df.to_csv(buf, index=False)
    buf.seek(0)
    headers = {"Content-Disposition": f'attachment; filename="{filename}"'} if filename else None
    return StreamingResponse(iter([buf.getvalue()]), media_type="text/csv", headers=headers)


def df_to_xlsx_stream(df: pd.DataFrame, filename: str = "", sheet_name: str = "data") -> StreamingResponse:
    """Stream a dataframe as an .xlsx workbook (openpyxl engine)."""
    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name=sheet_name[:31] or "data")
    buf.seek(0)
    headers = {"Content-Disposition": f'attachment; filename="{filename}"'} if filename else None
    return StreamingResponse(iter([buf.getvalue()]), media_type=XLSX_MEDIA_TYPE, headers=headers)
