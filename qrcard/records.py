"""Record Model: the ordered key/value rows a card or code is built from."""

from dataclasses import dataclass, replace

from qrcard.logging import get_logger

log = get_logger("records")

FIELDS = ("key", "value")


@dataclass(frozen=True)
class Record:
    """One key/value row. Keys are not unique; order is meaningful."""
    key: str = ""
    value: str = ""

    def is_empty(self) -> bool:
        return not self.key.strip() and not self.value.strip()


class RecordModel:
    """Ordered list of records with the editing operations of the input form.

    The model always holds at least one row. Every mutation bumps ``revision``
    so derived values (flattened text, card token, pending generation) can be
    recognised as stale.
    """

    def __init__(self, records: list[Record] | None = None):
        self._records: list[Record] = list(records) if records else [Record()]
        self.revision = 0

    @classmethod
    def from_text(cls, text: str) -> "RecordModel":
        """Parse ``key: value`` lines; lines without a colon become value-only rows."""
        records = []
        for line in text.splitlines():
            if not line.strip():
                continue
            key, sep, value = line.partition(":")
            if sep:
                records.append(Record(key.strip(), value.strip()))
            else:
                records.append(Record("", line.strip()))
        return cls(records)

    @classmethod
    def from_pairs(cls, pairs: list[tuple[str, str]]) -> "RecordModel":
        return cls([Record(k, v) for k, v in pairs])

    @property
    def records(self) -> list[Record]:
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self):
        return iter(list(self._records))

    def __getitem__(self, index: int) -> Record:
        return self._records[index]

    def _touch(self):
        self.revision += 1

    def add_record(self) -> int:
        """Append an empty row and return its index."""
        self._records.append(Record())
        self._touch()
        return len(self._records) - 1

    def update_record(self, index: int, field: str, value: str):
        """Replace ``field`` ("key" or "value") of the row at ``index``.

        Length is not checked here: the 4000-character ceiling applies to the
        flattened projection, which truncates.
        """
        if field not in FIELDS:
            raise ValueError(f"unknown record field {field!r}, expected one of {FIELDS}")
        self._records[index] = replace(self._records[index], **{field: value})
        self._touch()

    def remove_record(self, index: int) -> bool:
        """Delete the row at ``index``. The last remaining row is never removed."""
        if len(self._records) <= 1:
            log.debug("remove_record ignored: model keeps at least one row")
            return False
        del self._records[index]
        self._touch()
        return True

    def clear(self):
        """Reset to a single empty row."""
        self._records = [Record()]
        self._touch()
