"""qrcard: QR codes, CODE128 barcodes and self-contained information cards."""

__version__ = "0.3.0"
