# src/careops/utils/device.py
# Purpose: classify the client from its self-reported identification string
from __future__ import annotations

import re
from typing import Optional, Sequence, Tuple

from src.careops.schemas.session_schema import UNKNOWN, DeviceClass, DeviceInfo

_TABLET_RE = re.compile(r"(tablet|ipad|playbook|silk)|(android(?!.*mobi))", re.IGNORECASE)
_MOBILE_RE = re.compile(
    r"Mobile|Android|iP(hone|od)|IEMobile|BlackBerry|Kindle|Silk-Accelerated|(hpw|web)OS|Opera M(obi|ini)"
)

# Ordered: first rule with any matching substring wins.
# Edge/Opera/Samsung identify as Chrome too, so they come before it.
_BROWSER_RULES: Sequence[Tuple[Tuple[str, ...], str]] = (
    (("Firefox",), "Firefox"),
    (("SamsungBrowser",), "Samsung Internet"),
    (("Opera", "OPR"), "Opera"),
    (("Trident",), "Internet Explorer"),
    (("Edge",), "Edge (Legacy)"),
    (("Edg",), "Edge"),
    (("Chrome",), "Chrome"),
    (("Safari",), "Safari"),
)

# Android reports "Linux" and iOS reports "Mac OS X"
_OS_RULES: Sequence[Tuple[Tuple[str, ...], str]] = (
    (("Android",), "Android"),
    (("iPhone", "iPad", "iPod", "iOS"), "iOS"),
    (("Win",), "Windows"),
    (("Mac",), "macOS"),
    (("Linux",), "Linux"),
)


def _first_match(ua: str, rules: Sequence[Tuple[Tuple[str, ...], str]]) -> str:
    for needles, label in rules:
        if any(n in ua for n in needles):
            return label
    return UNKNOWN


def device_class(ua: str) -> DeviceClass:
    if _TABLET_RE.search(ua):
        return DeviceClass.TABLET
    if _MOBILE_RE.search(ua):
        return DeviceClass.MOBILE
    return DeviceClass.DESKTOP


def identify(user_agent: Optional[str]) -> DeviceInfo:
    """Best-effort, never fails: unknown strings classify as Desktop / Unknown."""
    ua = user_agent or ""
    kind = device_class(ua)
    browser = _first_match(ua, _BROWSER_RULES)
    return DeviceInfo(
        device=f"{kind.value} - {browser}",
        device_type=kind,
        browser=browser,
        os=_first_match(ua, _OS_RULES),
        user_agent=ua,
    )


def _to_base36(n: int) -> str:
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    if n == 0:
        return "0"
    out = []
    while n:
        n, r = divmod(n, 36)
        out.append(digits[r])
    return "".join(reversed(out))


def session_fingerprint(
    user_agent: str,
    screen: Optional[str] = None,
    language: Optional[str] = None,
    timezone: Optional[str] = None,
) -> str:
    """Short stable hash of the client environment (31-bit string hash, base 36)."""
    source = f"{user_agent}-{screen or ''}-{language or ''}-{timezone or ''}"
    h = 0
    for ch in source:
        h = ((h << 5) - h + ord(ch)) & 0xFFFFFFFF
    if h & 0x80000000:
        h -= 0x100000000
    return _to_base36(abs(h))
