"""Export and share: PNG download, data URLs and messenger deep-links.

Export faults never propagate: a failed download or share is logged and
reported as a False/None return.
"""

import base64
import io
import re
import webbrowser
from pathlib import Path
from urllib.parse import quote

from PIL import Image

from qrcard.logging import audit, get_logger
from qrcard.modes import Mode

log = get_logger("share")

SHARE_PREVIEW_CHARS = 100

FILE_NAMES = {Mode.MATRIX: "qrcode.png", Mode.LINEAR: "barcode.png"}

_DATA_URL_RE = re.compile(r"data:(?P<mime>[^;,]+);base64,(?P<data>.*)", re.DOTALL)


def file_name_for(mode: Mode | str) -> str:
    return FILE_NAMES[Mode.parse(mode)]


def image_to_png_bytes(image: Image.Image) -> bytes:
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return buf.getvalue()


def image_to_data_url(image: Image.Image) -> str:
    return "data:image/png;base64," + base64.b64encode(image_to_png_bytes(image)).decode("ascii")


def data_url_to_bytes(data_url: str) -> tuple[str, bytes]:
    """Split a base64 data URL into (mime type, raw bytes)."""
    m = _DATA_URL_RE.fullmatch(data_url)
    if m is None:
        raise ValueError("not a base64 data URL")
    return m.group("mime"), base64.b64decode(m.group("data"))


def download(image: Image.Image | None, path: str | Path) -> Path | None:
    """Save ``image`` as PNG at ``path``. Returns None when nothing was written."""
    if image is None:
        return None
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        image.save(path, format="PNG")
    except OSError as e:
        log.warning("download to %s failed: %s", path, e)
        return None
    audit("export.saved", logger=log, path=str(path), image_px=f"{image.size[0]}x{image.size[1]}")
    return path


def share_text(text: str, limit: int = SHARE_PREVIEW_CHARS) -> str:
    return text[:limit] + "..." if len(text) > limit else text


def share_links(text: str) -> dict[str, str]:
    """Messenger deep-links pre-filled with the payload text."""
    preview = share_text(text)
    return {
        "telegram": (f"https://t.me/share/url?url={quote(text, safe='')}"
                     f"&text={quote('QR/Barcode: ' + preview, safe='')}"),
        "whatsapp": f"https://wa.me/?text={quote(preview, safe='')}",
    }


def open_share(target: str, text: str) -> bool:
    """Open the deep-link for ``target`` in a browser; unknown targets are a no-op."""
    url = share_links(text).get(target)
    if url is None:
        return False
    try:
        opened = webbrowser.open(url, new=2)
    except webbrowser.Error as e:
        log.warning("share via %s failed: %s", target, e)
        return False
    audit("share.opened", logger=log, target=target, opened=opened)
    return opened
