"""Code generators: QR matrix codes via qrcode, CODE128 barcodes via python-barcode."""

import asyncio
from enum import Enum

import qrcode
import qrcode.constants
from barcode import Code128
from barcode.writer import ImageWriter
from PIL import Image

from qrcard.logging import audit, get_logger, trace

log = get_logger("generator")

FOREGROUND = "#1d1b1a"
BACKGROUND = "#ffffff"

# Barcode geometry is given in screen pixels; python-barcode works in mm
BARCODE_DPI = 96
BARCODE_MARGIN_PX = 8
LABEL_FONT_SIZE = 16
LABEL_MARGIN_PX = 6


class ECCLevel(Enum):
    L = qrcode.constants.ERROR_CORRECT_L  # 7%
    M = qrcode.constants.ERROR_CORRECT_M  # 15%
    Q = qrcode.constants.ERROR_CORRECT_Q  # 25%
    H = qrcode.constants.ERROR_CORRECT_H  # 30%


ECC_NAMES = {"L": ECCLevel.L, "M": ECCLevel.M, "Q": ECCLevel.Q, "H": ECCLevel.H}


def _px_to_mm(px: float) -> float:
    return px * 25.4 / BARCODE_DPI


@trace
def generate_matrix(
    data: str,
    size: int = 260,
    ecc: str = "H",
    margin: int = 1,
    foreground: str = FOREGROUND,
    background: str = BACKGROUND,
) -> Image.Image:
    """Render ``data`` as a QR code image of exactly ``size`` x ``size`` pixels.

    Args:
        data: Text to encode.
        size: Output width and height in pixels.
        ecc: Error correction level: L/M/Q/H.
        margin: Quiet zone width in modules.
        foreground: Module colour.
        background: Background colour.

    Raises:
        qrcode.exceptions.DataOverflowError: ``data`` does not fit version 40 (qrcode 7.x).
        ValueError: the same overflow as reported by qrcode 8.x.
    """
    ecc_level = ECC_NAMES[ecc.upper()]
    qr = qrcode.QRCode(
        version=None,
        error_correction=ecc_level.value,
        box_size=1,
        border=margin,
    )
    qr.add_data(data)
    qr.make(fit=True)

    modules = qr.modules_count + 2 * margin
    qr.box_size = max(1, size // modules)
    img = qr.make_image(fill_color=foreground, back_color=background).convert("RGB")
    if img.size != (size, size):
        img = img.resize((size, size), Image.NEAREST)

    audit("qr.generated", logger=log,
          data=data[:80], version=qr.version, ecc=ecc.upper(),
          image_px=f"{img.size[0]}x{img.size[1]}")
    return img


async def generate_matrix_async(data: str, size: int = 260, ecc: str = "H", **options) -> Image.Image:
    """Run generate_matrix in a worker thread so the event loop keeps serving input."""
    return await asyncio.to_thread(generate_matrix, data, size, ecc, **options)


@trace
def generate_linear(
    data: str,
    size: int = 260,
    show_label: bool = False,
    label: str | None = None,
    font_path: str | None = None,
) -> Image.Image:
    """Render ``data`` as a CODE128 barcode image.

    Bar width is ``max(1.2, size / 120)`` px and bar height ``max(70, size * 0.6)`` px.
    When ``show_label`` is set the caption is ``label`` (or ``data`` if unset).

    Raises:
        ValueError: ``data`` holds characters CODE128 cannot encode.
    """
    bad = sorted({ch for ch in data if ord(ch) > 127})
    if bad:
        raise ValueError(f"CODE128 encodes ASCII only, got {''.join(bad[:5])!r}")

    options = {
        "module_width": _px_to_mm(max(1.2, size / 120)),
        "module_height": _px_to_mm(max(70, size * 0.6)),
        "quiet_zone": _px_to_mm(BARCODE_MARGIN_PX),
        "font_size": LABEL_FONT_SIZE,
        "text_distance": _px_to_mm(LABEL_MARGIN_PX),
        "foreground": FOREGROUND,
        "background": BACKGROUND,
        "dpi": BARCODE_DPI,
        "write_text": show_label,
    }
    if font_path:
        options["font_path"] = font_path

    code = Code128(data, writer=ImageWriter())
    img = code.render(options, text=(label or data) if show_label else None)
    img = img.convert("RGB")

    audit("barcode.generated", logger=log,
          data=data[:80], label=(label or data)[:40] if show_label else None,
          image_px=f"{img.size[0]}x{img.size[1]}")
    return img
