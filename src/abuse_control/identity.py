"""Client identity derivation.

The token is a bucketing key for abuse accounting, not an anonymization
scheme: a 32-bit rolling hash collides easily and can be brute-forced.
"""

from __future__ import annotations

from typing import Mapping, Optional

UNKNOWN_ADDRESS = "unknown"

# Checked in order; the first non-empty value wins.
ADDRESS_HEADERS = ("x-forwarded-for", "x-real-ip", "cf-connecting-ip")


def resolve_client_address(headers: Mapping[str, str], client_host: Optional[str]) -> str:
    for name in ADDRESS_HEADERS:
        value = headers.get(name)
        if not value:
            continue
        if name == "x-forwarded-for":
            value = value.split(",")[0]
        value = value.strip()
        if value:
            return value
    if client_host:
        return client_host
    return UNKNOWN_ADDRESS


def hash_identity(address: str) -> str:
    """Fold ``address`` into a short opaque token (``h = h * 31 + c`` over int32)."""
    value = 0
    for char in address:
        value = (value * 31 + ord(char)) & 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000
    return f"ip_{abs(value):x}"


def resolve_identity(headers: Mapping[str, str], client_host: Optional[str]) -> str:
    return hash_identity(resolve_client_address(headers, client_host))
