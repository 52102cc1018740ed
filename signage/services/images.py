from __future__ import annotations

import base64
import mimetypes
from dataclasses import dataclass
from pathlib import Path

from signage.utils.hash import sha256_hex


@dataclass(frozen=True)
class Image:
    data: bytes
    mime: str = ""

    @property
    def is_svg(self) -> bool:
        return "svg" in self.mime.lower()

    def digest(self) -> str:
        return sha256_hex(self.data)


def decode_data_url(data_url: str) -> tuple[bytes, str]:
    s = str(data_url or "")
    if not s.startswith("data:"):
        raise ValueError("INVALID_DATA_URL")

    header, _, payload = s.partition(",")
    if not payload:
        raise ValueError("INVALID_DATA_URL")

    mime = header[5:].split(";")[0]
    if ";base64" in header:
        return base64.b64decode(payload.encode("ascii")), mime
    return payload.encode("utf-8"), mime


def image_from_data_url(data_url: str, mime: str | None = None) -> Image:
    raw_bytes, mime_from_url = decode_data_url(data_url)
    effective_mime = str(mime or "").strip().lower() or mime_from_url.lower()
    return Image(data=raw_bytes, mime=effective_mime)


def load_image_file(path: str | Path) -> Image:
    p = Path(path)
    if not p.exists() or not p.is_file():
        raise ValueError(f"IMAGE_NOT_FOUND: {p}")
    guessed, _ = mimetypes.guess_type(p.name)
    return Image(data=p.read_bytes(), mime=guessed or "application/octet-stream")
