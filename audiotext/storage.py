# audiotext/storage.py
"""Object storage for uploaded audio: bytes by key under one root directory."""
from __future__ import annotations

import logging
import os
import re
import uuid
from typing import Optional

from audiotext.errors import StorageError

log = logging.getLogger(__name__)

_SAFE = re.compile(r"[^A-Za-z0-9._-]+")


def make_storage_key(user_id: str, original_name: str) -> str:
    """``audio/{user}/{uuid}-{sanitized name}``; never trusts the client's filename as a path."""
    base = os.path.basename(original_name or "").strip() or "audio"
    base = _SAFE.sub("_", base)[-120:]
    return f"audio/{user_id}/{uuid.uuid4().hex}-{base}"


class ObjectStorage:
    def __init__(self, root: str):
        self.root = os.path.abspath(root)
        os.makedirs(self.root, exist_ok=True)

    def _path(self, key: str) -> str:
        path = os.path.abspath(os.path.join(self.root, key))
        if os.path.commonpath([self.root, path]) != self.root:
            raise StorageError(f"Invalid storage key: {key!r}")
        return path

    def put(self, key: str, data: bytes) -> int:
        path = self._path(key)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        tmp = f"{path}.part"
        with open(tmp, "wb") as f:
            f.write(data)
        os.replace(tmp, path)
        log.info("stored %s (%d bytes)", key, len(data))
        return len(data)

    def get(self, key: str) -> Optional[bytes]:
        path = self._path(key)
        if not os.path.isfile(path):
            return None
        with open(path, "rb") as f:
            return f.read()

    def delete(self, key: str) -> bool:
        path = self._path(key)
        try:
            os.remove(path)
            return True
        except FileNotFoundError:
            return False
