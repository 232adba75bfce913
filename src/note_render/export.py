"""Export the entities found in processed content as CSV or JSON."""

import csv
import io
from dataclasses import asdict
from typing import TextIO

from .formatting import truncate_note_content
from .models import ProcessedContent

CSV_COLUMNS = ["kind", "value", "detail"]


def entity_rows(processed: ProcessedContent) -> list[dict]:
    """One row per extracted entity, in pipeline order."""
    rows: list[dict] = []
    for m in processed.media:
        rows.append({"kind": f"media:{m.type}", "value": m.url, "detail": m.thumbnail or ""})
    for link in processed.links:
        rows.append({"kind": "link", "value": link.url, "detail": link.domain})
    for tag in processed.hashtags:
        rows.append({"kind": "hashtag", "value": tag, "detail": ""})
    for ref in processed.quoted_references:
        rows.append({"kind": f"quote:{ref.type}", "value": ref.id, "detail": ""})
    return rows


def entities_to_csv(processed: ProcessedContent, output: TextIO | None = None) -> str:
    """Convert extracted entities to CSV.

    Args:
        processed: Pipeline output to export.
        output: Optional file-like object to write to. If None, returns CSV as string.

    Returns:
        CSV content as a string (also written to output if provided).
    """
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=CSV_COLUMNS, quoting=csv.QUOTE_MINIMAL)
    writer.writeheader()
    writer.writerows(entity_rows(processed))

    result = buf.getvalue()
    if output is not None:
        output.write(result)
    return result


def entities_to_dict(processed: ProcessedContent) -> dict:
    """JSON-ready view of the extracted entities (html omitted), with a one-line preview."""
    return {
        "preview": truncate_note_content(processed.text),
        "media": [asdict(m) for m in processed.media],
        "links": [asdict(link) for link in processed.links],
        "hashtags": list(processed.hashtags),
        "quoted_references": [asdict(ref) for ref in processed.quoted_references],
    }
