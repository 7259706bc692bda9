"""qrcard error hierarchy."""


class QRCardError(Exception):
    """Base error for all qrcard operations."""


class TokenDecodeError(QRCardError):
    """A card token is not valid base64url, UTF-8, or record JSON."""


class TokenCapacityError(QRCardError):
    """A card-mode payload is too long to fit a scannable matrix code."""

    def __init__(self, length: int, limit: int):
        super().__init__(f"card payload is {length} characters, limit is {limit}")
        self.length = length
        self.limit = limit
