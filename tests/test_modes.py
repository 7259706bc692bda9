"""Tests for payload and option resolution per mode."""

from qrcard.modes import CARD_BASE_URL, LABEL_MAX, Mode, resolve, resolve_label
from qrcard.records import Record
from qrcard.token import decode_token, token_from_url


class TestMatrixMode:
    """QR payloads."""

    def test_plain_text_uses_high_ecc(self, contact_records) -> None:
        """Card mode off: flattened text at ECC H."""
        resolved = resolve(Mode.MATRIX, False, contact_records)
        assert resolved.payload == "Ism: Ali\nTelefon: +998901234567"
        assert resolved.ecc == "H"
        assert not resolved.card_mode

    def test_card_mode_embeds_token_url(self, contact_records) -> None:
        """Card mode on: base URL with the token at ECC M."""
        resolved = resolve(Mode.MATRIX, True, contact_records)
        assert resolved.payload.startswith(CARD_BASE_URL + "?d=")
        assert resolved.ecc == "M"
        assert token_from_url(resolved.payload) == contact_records

    def test_card_mode_custom_base_url(self, contact_records) -> None:
        """The landing page URL is configurable."""
        resolved = resolve("qr", True, contact_records, base_url="https://cards.example/v")
        assert resolved.payload.startswith("https://cards.example/v?d=")

    def test_card_mode_drops_blank_rows(self) -> None:
        """Only non-empty rows are embedded."""
        resolved = resolve(Mode.MATRIX, True, [Record("a", "1"), Record(" ", "")])
        token = resolved.payload.split("?d=", 1)[1]
        assert decode_token(token) == [Record("a", "1")]

    def test_card_mode_without_records_is_empty(self) -> None:
        """Nothing to embed means nothing to generate."""
        assert resolve(Mode.MATRIX, True, [Record()]).is_empty


class TestLinearMode:
    """Barcode payloads and labels."""

    def test_card_mode_has_no_effect(self, contact_records) -> None:
        """Barcodes always carry the flattened text."""
        resolved = resolve(Mode.LINEAR, True, contact_records)
        assert resolved.payload == "Ism: Ali\nTelefon: +998901234567"
        assert resolved.ecc is None

    def test_label_defaults_to_payload(self) -> None:
        """Label on, no custom text: the payload is the label."""
        resolved = resolve("barcode", False, [Record("", "ABC-123")], show_label=True)
        assert resolved.label.show
        assert resolved.label.text == "ABC-123"

    def test_custom_label_overrides(self) -> None:
        """A custom label replaces the payload text."""
        resolved = resolve("barcode", False, [Record("", "ABC-123")], show_label=True, label="VIP-01")
        assert resolved.label.text == "VIP-01"

    def test_label_off(self) -> None:
        """No label unless the toggle is on."""
        resolved = resolve("barcode", False, [Record("", "ABC")], label="VIP-01")
        assert not resolved.label.show
        assert resolved.label.text is None


def test_custom_label_is_capped() -> None:
    """Custom labels keep at most 12 characters."""
    label = resolve_label("payload", True, "ABCDEFGHIJKLMNOP")
    assert label.text == "ABCDEFGHIJKL"
    assert len(label.text) == LABEL_MAX


def test_mode_parse() -> None:
    """Modes parse from their form values."""
    assert Mode.parse("QR") is Mode.MATRIX
    assert Mode.parse(Mode.LINEAR) is Mode.LINEAR
