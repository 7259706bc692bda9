"""Text Projector: records -> flattened display text and non-empty subset."""

from qrcard.records import Record

# Input ceiling, applied to the flattened text rather than to single fields
MAX_LENGTH = 4000


def truncate(text: str, limit: int = MAX_LENGTH) -> str:
    """Cut ``text`` to the input ceiling. Idempotent."""
    return text[:limit]


def filter_non_empty(records: list[Record]) -> list[Record]:
    """Drop rows whose trimmed key and trimmed value are both empty."""
    return [r for r in records if not r.is_empty()]


def format_record(record: Record) -> str:
    key, value = record.key.strip(), record.value.strip()
    if key and value:
        return f"{record.key}: {record.value}"
    # Plain-text rows have no key; a bare key stands on its own
    return record.value if value else record.key


def flatten(records: list[Record], limit: int = MAX_LENGTH) -> str:
    """Join ``key: value`` lines of the non-empty rows, truncated to ``limit``."""
    return truncate("\n".join(format_record(r) for r in filter_non_empty(records)), limit)


def counter_text(text: str, limit: int = MAX_LENGTH) -> str:
    """The ``used/limit`` counter shown next to the input."""
    return f"{len(text)}/{limit}"
