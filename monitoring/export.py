"""
Log export

Serializes log query results to CSV, JSON or a plain-text report.
"""
import csv
import io
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from engine.errors import InvalidRequestError
from monitoring.event_log import LogEntry, parse_timestamp

logger = logging.getLogger(__name__)

CSV_HEADERS = ["Timestamp", "Type", "Severity", "Source", "Message"]

EXPORT_FORMATS = {
    "csv": ("csv", "text/csv"),
    "json": ("json", "application/json"),
    "text": ("txt", "text/plain"),
    "pdf": ("txt", "text/plain"),
}


@dataclass
class ExportResult:
    """Serialized export ready to be downloaded or written"""
    format: str
    filename: str
    mime_type: str
    content: str
    count: int

    def write_to(self, directory: str) -> Path:
        out_dir = Path(directory)
        out_dir.mkdir(parents=True, exist_ok=True)
        path = out_dir / self.filename
        path.write_text(self.content, encoding="utf-8")
        logger.info(f"Exported {self.count} log entries to {path}")
        return path


def date_stamp(now: datetime) -> str:
    """YYYYMMDD stamp used in export filenames"""
    return now.strftime("%Y%m%d")


def to_csv(entries: List[LogEntry]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for entry in entries:
        writer.writerow([
            parse_timestamp(entry.timestamp).isoformat(),
            entry.type,
            entry.severity or "medium",
            entry.source,
            entry.message
        ])
    return buffer.getvalue()


def to_json(entries: List[LogEntry]) -> str:
    return json.dumps([entry.to_dict() for entry in entries], indent=2)


def to_text_report(entries: List[LogEntry], generated: datetime) -> str:
    lines = [
        "AI Attack Detection Platform - Log Export",
        "",
        f"Generated: {generated.isoformat()}",
        ""
    ]
    for entry in entries:
        when = parse_timestamp(entry.timestamp).strftime("%Y-%m-%d %H:%M:%S")
        lines.append(f"[{when}] {entry.type.upper()} - {entry.source}: {entry.message}")
        lines.append("")
    return "\n".join(lines)


def export_logs(entries: List[LogEntry], format: str, now: Optional[datetime] = None) -> ExportResult:
    """
    Serialize entries in the requested format.

    Args:
        entries: Filtered log entries, newest first
        format: csv, json, text (pdf is accepted as an alias of text)
        now: Export time; defaults to the current UTC time

    Returns:
        ExportResult with a logs_YYYYMMDD filename
    """
    fmt = (format or "").lower()
    if fmt not in EXPORT_FORMATS:
        raise InvalidRequestError(f"Unsupported export format: {format}")

    now = now or datetime.now(timezone.utc)
    extension, mime_type = EXPORT_FORMATS[fmt]

    if fmt == "csv":
        content = to_csv(entries)
    elif fmt == "json":
        content = to_json(entries)
    else:
        content = to_text_report(entries, now)

    return ExportResult(
        format=fmt,
        filename=f"logs_{date_stamp(now)}.{extension}",
        mime_type=mime_type,
        content=content,
        count=len(entries)
    )
