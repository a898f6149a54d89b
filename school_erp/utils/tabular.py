"""CSV / XLSX readers and writers for exports, templates and bulk uploads."""
from io import BytesIO
from typing import Any, Dict, List, Optional, Sequence
import logging

import pandas as pd
from fastapi.responses import Response

from school_erp.core.errors import ValidationError

logger = logging.getLogger(__name__)

CSV_MEDIA_TYPE = "text/csv"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
SUPPORTED_FORMATS = {"csv", "xlsx"}


def build_frame(rows: Sequence[Dict[str, Any]], columns: Sequence[str], labels: Optional[Dict[str, str]] = None) -> pd.DataFrame:
    frame = pd.DataFrame(list(rows), columns=list(columns))
    if labels:
        frame = frame.rename(columns={c: labels.get(c, c) for c in columns})
    return frame


def frame_to_bytes(frame: pd.DataFrame, fmt: str, sheet_name: str = "Sheet1") -> bytes:
    fmt = (fmt or "csv").lower()
    if fmt not in SUPPORTED_FORMATS:
        raise ValidationError(f"Unsupported export format: {fmt}")

    buffer = BytesIO()
    if fmt == "csv":
        frame.to_csv(buffer, index=False)
    else:
        with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
            frame.to_excel(writer, index=False, sheet_name=sheet_name[:31])
    return buffer.getvalue()


def file_response(content: bytes, filename: str, fmt: str) -> Response:
    media_type = XLSX_MEDIA_TYPE if fmt == "xlsx" else CSV_MEDIA_TYPE
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}.{fmt}"'},
    )


def export_rows(
    rows: Sequence[Dict[str, Any]],
    columns: Sequence[str],
    filename: str,
    fmt: str = "csv",
    labels: Optional[Dict[str, str]] = None,
    sheet_name: str = "Sheet1"
) -> Response:
    frame = build_frame(rows, columns, labels)
    return file_response(frame_to_bytes(frame, fmt, sheet_name), filename, (fmt or "csv").lower())


def read_upload(content: bytes, filename: str) -> List[Dict[str, Any]]:
    """
    Parse an uploaded CSV or Excel file into row dicts keyed by the header row.
    Empty cells become None; header names are stripped.
    """
    name = (filename or "").lower()
    try:
        if name.endswith(".csv"):
            frame = pd.read_csv(BytesIO(content), dtype=str, keep_default_na=False)
        elif name.endswith((".xlsx", ".xls")):
            frame = pd.read_excel(BytesIO(content), dtype=object, engine="openpyxl")
        else:
            raise ValidationError("Only .csv and .xlsx files are supported")
    except ValidationError:
        raise
    except Exception as e:
        logger.warning(f"Could not parse upload {filename}: {str(e)}")
        raise ValidationError("Could not read the uploaded file", details=str(e))

    frame.columns = [str(c).strip() for c in frame.columns]
    frame = frame.dropna(how="all")

    rows = []
    for record in frame.to_dict(orient="records"):
        row = {}
        for key, value in record.items():
            if value is None or (isinstance(value, float) and pd.isna(value)):
                row[key] = None
            elif isinstance(value, str):
                row[key] = value.strip() or None
            elif isinstance(value, pd.Timestamp):
                row[key] = value.date().isoformat()
            else:
                row[key] = value
        if any(v is not None for v in row.values()):
            rows.append(row)
    return rows
