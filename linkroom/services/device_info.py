# linkroom/services/device_info.py

from __future__ import annotations

import re
from typing import NamedTuple, Optional

from linkroom.models.models import DeviceType


class DeviceInfo(NamedTuple):
    device_type: DeviceType
    os_name: str


# Order matters: phone markers first, an Android UA also says "Linux".
_PATTERNS = [
    (re.compile(r"iPhone|iPad"), DeviceInfo(DeviceType.PHONE, "iOS")),
    (re.compile(r"Android"), DeviceInfo(DeviceType.PHONE, "Android")),
    (re.compile(r"Macintosh"), DeviceInfo(DeviceType.DESKTOP, "macOS")),
    (re.compile(r"Windows"), DeviceInfo(DeviceType.DESKTOP, "Windows")),
    (re.compile(r"Linux"), DeviceInfo(DeviceType.DESKTOP, "Linux")),
]

UNKNOWN_DEVICE = DeviceInfo(DeviceType.DESKTOP, "Unknown")


def resolve_device(user_agent: Optional[str]) -> DeviceInfo:
    """Classify a client from its User-Agent header."""
    ua = user_agent or ""
    for pattern, info in _PATTERNS:
        if pattern.search(ua):
            return info
    return UNKNOWN_DEVICE
