"""Card View Renderer: decoded records -> title, contact link and field rows."""

import re
from dataclasses import asdict, dataclass, field

from jinja2 import Environment, select_autoescape

from qrcard.records import Record

DEFAULT_TITLE = "Ma'lumot kartasi"

TITLE_KEYS = frozenset({
    "title", "name", "full name", "company",
    "ism", "nomi", "sarlavha", "kompaniya", "f.i.sh", "fish", "ism familiya",
    "имя", "название",
})
PHONE_KEYS = frozenset({
    "phone", "tel", "telephone", "mobile", "phone number",
    "telefon", "telefon raqami", "raqam", "tel.", "mobil",
    "телефон",
})

# Both values at most this long -> the two fields share a row
PAIR_MAX_CHARS = 18


@dataclass(frozen=True)
class CardField:
    label: str
    value: str


@dataclass(frozen=True)
class ContactLink:
    label: str
    value: str
    href: str


@dataclass
class CardLayout:
    title: str = DEFAULT_TITLE
    contact: ContactLink | None = None
    rows: list[list[CardField]] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def _norm(key: str) -> str:
    return " ".join(key.strip().lower().split())


def phone_href(value: str) -> str:
    """``tel:`` link keeping digits and a leading plus."""
    digits = re.sub(r"\D", "", value)
    return f"tel:+{digits}" if value.strip().startswith("+") else f"tel:{digits}"


def pair_rows(fields: list[CardField], max_chars: int = PAIR_MAX_CHARS) -> list[list[CardField]]:
    """Greedily pair adjacent short fields into two-column rows."""
    rows = []
    i = 0
    while i < len(fields):
        current = fields[i]
        nxt = fields[i + 1] if i + 1 < len(fields) else None
        if nxt is not None and len(current.value) <= max_chars and len(nxt.value) <= max_chars:
            rows.append([current, nxt])
            i += 2
        else:
            rows.append([current])
            i += 1
    return rows


def render_card(records: list[Record]) -> CardLayout:
    """Lay out a decoded record list as a card."""
    layout = CardLayout()
    rest = []
    for record in records:
        key = _norm(record.key)
        if layout.title == DEFAULT_TITLE and key in TITLE_KEYS and record.value.strip():
            layout.title = record.value.strip()
        elif layout.contact is None and key in PHONE_KEYS and record.value.strip():
            value = record.value.strip()
            layout.contact = ContactLink(label=record.key.strip(), value=value, href=phone_href(value))
        else:
            rest.append(CardField(label=record.key.strip(), value=record.value.strip()))
    layout.rows = pair_rows(rest)
    return layout


_env = Environment(autoescape=select_autoescape(default=True, default_for_string=True))

CARD_TEMPLATE = _env.from_string("""<!doctype html>
<html lang="uz">
<head><meta charset="utf-8"><meta name="viewport" content="width=device-width, initial-scale=1">
<title>{{ card.title }}</title></head>
<body>
<article class="card">
  <h1>{{ card.title }}</h1>
  {% for row in card.rows %}
  <div class="row cols-{{ row|length }}">
    {% for f in row %}
    <div class="field">{% if f.label %}<span class="label">{{ f.label }}</span>{% endif %}<span class="value">{{ f.value }}</span></div>
    {% endfor %}
  </div>
  {% endfor %}
  {% if card.contact %}
  <a class="contact" href="{{ card.contact.href }}">{{ card.contact.label }}: {{ card.contact.value }}</a>
  {% endif %}
</article>
</body>
</html>
""")


def render_card_html(layout: CardLayout) -> str:
    return CARD_TEMPLATE.render(card=layout)
