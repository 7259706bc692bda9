"""Mode Resolver: decide which string goes to which generator, with which options."""

from dataclasses import dataclass
from enum import Enum

from qrcard.projector import filter_non_empty, flatten
from qrcard.records import Record
from qrcard.token import card_url, encode_token

# Landing page that renders a card from its ?d= token
CARD_BASE_URL = "https://qrcard.uz/"

# Custom barcode labels are capped at this many characters
LABEL_MAX = 12


class Mode(Enum):
    MATRIX = "qr"
    LINEAR = "barcode"

    @classmethod
    def parse(cls, value: "Mode | str") -> "Mode":
        if isinstance(value, cls):
            return value
        return cls(str(value).lower())


@dataclass(frozen=True)
class LabelOptions:
    """Barcode caption settings. ``text`` is None when no label is drawn."""
    show: bool = False
    text: str | None = None


@dataclass(frozen=True)
class ResolvedPayload:
    mode: Mode
    payload: str
    ecc: str | None = None
    label: LabelOptions = LabelOptions()
    card_mode: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.payload.strip()


def resolve_label(payload: str, show_label: bool, custom: str | None = None) -> LabelOptions:
    """Barcode label: off, the custom text (max 12 chars), or the payload itself."""
    if not show_label:
        return LabelOptions()
    custom = (custom or "")[:LABEL_MAX]
    return LabelOptions(show=True, text=custom or payload)


def resolve(
    mode: Mode | str,
    card_mode: bool,
    records: list[Record],
    show_label: bool = False,
    label: str | None = None,
    base_url: str = CARD_BASE_URL,
) -> ResolvedPayload:
    """Pick the effective payload and generator options for ``mode``.

    - linear: the flattened text, card mode ignored
    - matrix, card mode off: the flattened text at ECC H
    - matrix, card mode on: ``base_url?d=<token>`` at ECC M
    """
    mode = Mode.parse(mode)
    text = flatten(records)

    if mode is Mode.LINEAR:
        return ResolvedPayload(mode=mode, payload=text, label=resolve_label(text, show_label, label))

    if not card_mode:
        return ResolvedPayload(mode=mode, payload=text, ecc="H")

    filtered = filter_non_empty(records)
    if not filtered:
        return ResolvedPayload(mode=mode, payload="", ecc="M", card_mode=True)
    return ResolvedPayload(
        mode=mode,
        payload=card_url(base_url, encode_token(filtered)),
        ecc="M",
        card_mode=True,
    )
