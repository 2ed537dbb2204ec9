"""
Per-installation device id, stamped into exports.

The id is created on first use and persisted, e.g. 'device_1714557600000_x8k2m1q0z'.
"""

from __future__ import annotations

import secrets
import string
from pathlib import Path

from . import config
from .paths import DEVICE_ID_PATH
from .util import now_ms

_BASE36 = string.digits + string.ascii_lowercase


def new_device_id() -> str:
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"{config.DEVICE_ID_PREFIX}{now_ms()}_{suffix}"


def get_or_create_device_id(path: Path = DEVICE_ID_PATH) -> str:
    if path.exists():
        device_id = path.read_text(encoding="utf-8").strip()
        if device_id:
            return device_id
    device_id = new_device_id()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(device_id + "\n", encoding="utf-8")
    return device_id
