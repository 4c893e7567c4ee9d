"""
Submission export formats.

CSV header rows are the model's column names in declaration order. A
combined (both kinds) export prefixes ``record_type`` and uses the union of
both column sets, patient columns first.
"""

import csv
import enum
import io
import json
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from ..models.submission import PatientRequest, ProviderApplication, SubmissionKind, SUBMISSION_MODELS


RECORD_TYPE_COLUMN = "record_type"
SPECIALTY_SEPARATOR = "; "


def export_columns(kind: Optional[SubmissionKind]) -> List[str]:
    """Header for a single-kind export, or the combined header when ``kind`` is None."""
    if kind is not None:
        return SUBMISSION_MODELS[kind].column_names()

    columns = [RECORD_TYPE_COLUMN]
    for model in (PatientRequest, ProviderApplication):
        for name in model.column_names():
            if name not in columns:
                columns.append(name)
    return columns


def _csv_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, enum.Enum):
        return str(value.value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return SPECIALTY_SEPARATOR.join(str(item) for item in value)
    return str(value)


def _json_value(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _row(record, combined: bool) -> Dict[str, Any]:
    data = record.to_dict()
    if combined:
        data = {RECORD_TYPE_COLUMN: record.kind.value, **data}
    return data


def to_csv(rows: Sequence, kind: Optional[SubmissionKind]) -> str:
    """
    Render rows as CSV.

    Values containing commas, quotes or newlines are quoted; an empty
    result is the header row alone.
    """
    columns = export_columns(kind)
    combined = kind is None

    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(columns)
    for record in rows:
        data = _row(record, combined)
        writer.writerow([_csv_value(data.get(column)) for column in columns])
    return buffer.getvalue()


def to_json(rows: Sequence, kind: Optional[SubmissionKind]) -> str:
    combined = kind is None
    payload = [
        {key: _json_value(value) for key, value in _row(record, combined).items()}
        for record in rows
    ]
    return json.dumps(payload, indent=2)
