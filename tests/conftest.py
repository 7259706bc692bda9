import logging

import pytest

from qrcard.logging import ROOT
from qrcard.records import Record


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop handlers the CLI installs so they do not outlive captured streams."""
    yield
    root = logging.getLogger(ROOT)
    root.handlers.clear()
    root.propagate = True
    root.setLevel(logging.NOTSET)


@pytest.fixture
def contact_records() -> list[Record]:
    """The name + phone card used across the codec and view tests."""
    return [Record("Ism", "Ali"), Record("Telefon", "+998901234567")]


@pytest.fixture
def mixed_records() -> list[Record]:
    """Records with blanks, unicode and URL-reserved characters."""
    return [
        Record("Ism", "Ali"),
        Record("", ""),
        Record("Manzil", "Toshkent & Samarqand = 2 shahar"),
        Record("   ", "  "),
        Record("Izoh", "100% \"qo'shtirnoq\" \n yangi qator"),
        Record("Emoji", "🚀 ✓"),
    ]
