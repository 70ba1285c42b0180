from __future__ import annotations

from datetime import datetime
from io import BytesIO

from .document import MergedDocument


APP_NAME = "pdf-linkmerge"


def format_pdf_date(moment: datetime) -> str:
    """Render a PDF date string, e.g. ``D:20240131093000+01'00'``."""

    if moment.tzinfo is None:
        moment = moment.astimezone()
    stamp = moment.strftime("D:%Y%m%d%H%M%S")

    offset = moment.utcoffset()
    minutes = int(offset.total_seconds() // 60) if offset is not None else 0
    if minutes == 0:
        return stamp + "Z"
    sign = "+" if minutes > 0 else "-"
    hours, mins = divmod(abs(minutes), 60)
    return f"{stamp}{sign}{hours:02d}'{mins:02d}'"


def build_metadata(*, creator: str = APP_NAME, now: datetime | None = None) -> dict[str, str]:
    stamp = format_pdf_date(now or datetime.now().astimezone())
    return {
        "/CreationDate": stamp,
        "/ModDate": stamp,
        "/Creator": creator,
        "/Producer": f"pypdf - {creator}",
    }


def serialize(document: MergedDocument, metadata: dict[str, str]) -> bytes:
    document.writer.add_metadata(metadata)
    buf = BytesIO()
    document.writer.write(buf)
    return buf.getvalue()
