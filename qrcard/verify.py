"""Scan verification: read a generated code back and compare it with its payload."""

import time
from dataclasses import dataclass

import cv2
import numpy as np
from PIL import Image
from pyzbar.pyzbar import decode as pyzbar_decode

from qrcard.logging import audit, get_logger, trace
from qrcard.modes import Mode
from qrcard.records import Record
from qrcard.token import token_from_url

log = get_logger("verify")


@dataclass
class ScanResult:
    """Result of a single scan attempt."""
    success: bool
    decoded_data: str | None = None
    decode_time_ms: float = 0.0
    decoder: str = ""
    symbology: str | None = None
    error: str | None = None


def _pad(image: Image.Image, border: int = 20) -> Image.Image:
    # Decoders want a quiet zone wider than the one we render with
    img = image.convert("RGB")
    canvas = Image.new("RGB", (img.size[0] + 2 * border, img.size[1] + 2 * border), (255, 255, 255))
    canvas.paste(img, (border, border))
    return canvas


@trace
def scan_pyzbar(image: Image.Image) -> ScanResult:
    """Scan a QR code or CODE128 barcode using pyzbar (wraps ZBar)."""
    start = time.perf_counter()
    try:
        results = pyzbar_decode(_pad(image))
    except Exception as e:
        elapsed = (time.perf_counter() - start) * 1000
        audit("scan.error", logger=log, decoder="pyzbar/zbar", error=str(e), time_ms=round(elapsed, 1))
        return ScanResult(success=False, decode_time_ms=elapsed, decoder="pyzbar/zbar", error=str(e))

    elapsed = (time.perf_counter() - start) * 1000
    if not results:
        audit("scan.verified", logger=log, decoder="pyzbar/zbar", success=False, time_ms=round(elapsed, 1))
        return ScanResult(success=False, decode_time_ms=elapsed, decoder="pyzbar/zbar", error="No code detected")

    data = results[0].data.decode("utf-8", errors="replace")
    audit("scan.verified", logger=log, decoder="pyzbar/zbar", success=True,
          symbology=results[0].type, time_ms=round(elapsed, 1), data=data[:80])
    return ScanResult(
        success=True,
        decoded_data=data,
        decode_time_ms=elapsed,
        decoder="pyzbar/zbar",
        symbology=results[0].type,
    )


@trace
def scan_opencv(image: Image.Image) -> ScanResult:
    """Scan a QR code using OpenCV's built-in QR detector."""
    start = time.perf_counter()
    try:
        arr = np.array(_pad(image))
        gray = cv2.cvtColor(arr, cv2.COLOR_RGB2GRAY)
        data, _points, _ = cv2.QRCodeDetector().detectAndDecode(gray)
    except Exception as e:
        elapsed = (time.perf_counter() - start) * 1000
        audit("scan.error", logger=log, decoder="opencv", error=str(e), time_ms=round(elapsed, 1))
        return ScanResult(success=False, decode_time_ms=elapsed, decoder="opencv", error=str(e))

    elapsed = (time.perf_counter() - start) * 1000
    if not data:
        audit("scan.verified", logger=log, decoder="opencv", success=False, time_ms=round(elapsed, 1))
        return ScanResult(success=False, decode_time_ms=elapsed, decoder="opencv", error="No QR code detected")

    audit("scan.verified", logger=log, decoder="opencv", success=True, time_ms=round(elapsed, 1), data=data[:80])
    return ScanResult(success=True, decoded_data=data, decode_time_ms=elapsed, decoder="opencv", symbology="QRCODE")


@trace
def verify(image: Image.Image, expected_data: str | None = None, mode: Mode | str = Mode.MATRIX) -> list[ScanResult]:
    """Run every decoder that understands ``mode`` on ``image``.

    Args:
        image: Rendered QR code or barcode.
        expected_data: If provided, a decoded value that differs marks the result failed.
        mode: Matrix codes are checked by pyzbar and OpenCV; barcodes by pyzbar only.

    Returns:
        List of ScanResults, one per decoder.
    """
    scanners = [scan_pyzbar, scan_opencv] if Mode.parse(mode) is Mode.MATRIX else [scan_pyzbar]
    results = []
    for scanner in scanners:
        result = scanner(image)
        if result.success and expected_data is not None and result.decoded_data != expected_data:
            result.success = False
            result.error = f"Data mismatch: got '{result.decoded_data}', expected '{expected_data}'"
        results.append(result)
    return results


def scan_card(image: Image.Image) -> list[Record] | None:
    """Scan a card-mode QR code and decode the records it carries."""
    for scanner in (scan_pyzbar, scan_opencv):
        result = scanner(image)
        if result.success:
            return token_from_url(result.decoded_data)
    return None
