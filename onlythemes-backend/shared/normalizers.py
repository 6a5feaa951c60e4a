# shared/normalizers.py
from typing import Any, Dict, Optional

from .config import SYSTEM_FIELDS

def public_doc(doc: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Copy of a Cosmos document without its _rid/_self/_etag/... internals."""
    if not doc:
        return {}
    return {k: v for k, v in doc.items() if k not in SYSTEM_FIELDS}

def extension_payload(body: Any) -> Optional[Dict[str, Any]]:
    """
    The bound extension, or None when the request carried nothing usable.
    Accepts either the bare document or {"extension": {...}}.
    """
    if isinstance(body, dict) and isinstance(body.get("extension"), dict):
        body = body["extension"]
    if not isinstance(body, dict) or not body:
        return None
    return public_doc(body)
