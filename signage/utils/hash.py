import hashlib
import json
from typing import Any, Union


def sha256_hex(data: Union[bytes, bytearray, memoryview]) -> str:
    h = hashlib.sha256()
    h.update(bytes(data))
    return h.hexdigest()


def payload_digest(payload: Any) -> str:
    # Canonical JSON so that key order never changes the digest.
    raw = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str).encode("utf-8")
    return sha256_hex(raw)
