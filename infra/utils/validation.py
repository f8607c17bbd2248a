"""Input validation helpers shared by the API and the SDK.

Ghi chú (vi):
- `sanitize_input` chỉ là denylist dựa trên regex, KHÔNG phải HTML sanitizer
  đầy đủ. Muốn chống markup injection thực sự cần parser (vd: bleach/nh3).
"""

import hashlib
import re
import uuid

_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)

_SCRIPT_BLOCK_RE = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_JS_SCHEME_RE = re.compile(r"javascript:", re.IGNORECASE)
_EVENT_HANDLER_RE = re.compile(r"on\w+\s*=", re.IGNORECASE)


def is_valid_uuid(value) -> bool:
    if not isinstance(value, str):
        return False
    return _UUID_RE.fullmatch(value) is not None


def sanitize_input(value: str) -> str:
    value = _SCRIPT_BLOCK_RE.sub("", value)
    value = _JS_SCHEME_RE.sub("", value)
    value = _EVENT_HANDLER_RE.sub("", value)
    return value.strip()


def generate_content_hash(content: str) -> str:
    """SHA-256 fingerprint of the payload, used for audit only."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def generate_uuid() -> str:
    return str(uuid.uuid4())
