import hashlib
import json
from typing import Any, Optional

from fastapi import Request, Response

__all__ = ["weak_etag", "not_modified"]


def weak_etag(payload: Any) -> str:
    """Deterministic weak ETag for a JSON-serializable payload or string.

    dict/list payloads are normalized to compact JSON with sorted keys.
    """
    if isinstance(payload, (dict, list)):
        raw = json.dumps(payload, separators=(",", ":"), sort_keys=True, default=str)
    elif isinstance(payload, (bytes, bytearray)):
        raw = bytes(payload).decode("utf-8", errors="ignore")
    else:
        raw = str(payload)
    return 'W/"' + hashlib.md5(raw.encode("utf-8")).hexdigest() + '"'


def not_modified(request: Optional[Request], response: Response, payload: Any) -> bool:
    """Stamp ``response`` with the payload's ETag; True when the client copy is current."""
    tag = weak_etag(payload)
    response.headers["ETag"] = tag
    if request is not None and request.headers.get("if-none-match") == tag:
        response.status_code = 304
        return True
    return False
