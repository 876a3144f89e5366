"""Export serialization helpers."""

from __future__ import annotations

import csv
import json
from datetime import datetime, timezone
from pathlib import Path

from .errors import ExportError
from .models import DetailRecord

EXPORT_FIELDS = [
    "name",
    "owner",
    "emails",
    "followers",
    "description",
    "url",
]


def record_to_row(record: DetailRecord) -> dict[str, str | int]:
    return {
        "name": record.name,
        "owner": record.owner,
        "emails": ", ".join(record.emails),
        "followers": record.followers,
        "description": record.description,
        "url": record.url,
    }


def default_filename(
    export_format: str, prefix: str = "playlist-export", now: datetime | None = None
) -> str:
    """Timestamped export filename, safe on every filesystem."""
    moment = now or datetime.now(timezone.utc)
    stamp = moment.strftime("%Y-%m-%dT%H-%M-%S-%fZ")
    return f"{prefix}-{stamp}.{export_format}"


def write_json(path: str | Path, records: list[DetailRecord]) -> None:
    output_path = Path(path)
    rows = [record_to_row(record) for record in records]
    output_path.write_text(json.dumps(rows, indent=2, ensure_ascii=False), encoding="utf-8")


def write_csv(path: str | Path, records: list[DetailRecord]) -> None:
    """Write export rows to CSV with stable schema."""
    output_path = Path(path)
    with output_path.open("w", newline="", encoding="utf-8") as file_obj:
        writer = csv.DictWriter(file_obj, fieldnames=EXPORT_FIELDS)
        writer.writeheader()
        for record in records:
            writer.writerow(record_to_row(record))


WRITERS = {"json": write_json, "csv": write_csv}


class FileExporter:
    """Writes records into a directory, one timestamped file per export."""

    def __init__(self, *, output_dir: str | Path, export_format: str = "json") -> None:
        self._output_dir = Path(output_dir)
        self._export_format = export_format

    def export(self, records: list[DetailRecord], filename: str | None = None) -> str:
        name = filename or default_filename(self._export_format)
        suffix = Path(name).suffix.lstrip(".").lower()
        writer = WRITERS.get(suffix, WRITERS[self._export_format])
        path = self._output_dir / name
        try:
            self._output_dir.mkdir(parents=True, exist_ok=True)
            writer(path, records)
        except OSError as exc:
            reason = exc.strerror or str(exc)
            raise ExportError(f"Export failed: could not write {path}: {reason}") from exc
        return str(path)
