# audiotext/responses.py
from __future__ import annotations

from typing import Any, Dict


def ok(data: Any = None, **extra: Any) -> Dict[str, Any]:
    """Success envelope: ``{"success": true, "data": ...}`` plus any top-level extras (e.g. message)."""
    body: Dict[str, Any] = {"success": True}
    if data is not None:
        body["data"] = data
    body.update(extra)
    return body
