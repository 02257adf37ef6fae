from __future__ import annotations

import uuid

BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
ID_BYTES = 16
ID_LENGTH = 22

# Fixed namespace so descriptor ids are stable across runs and machines.
DESCRIPTOR_NAMESPACE = uuid.UUID("5b0c6f0e-3a8e-4d55-9a63-2f1d7c1e9b42")


def encode_16bytes_base58(raw: bytes) -> str:
    if not isinstance(raw, (bytes, bytearray)) or len(raw) != ID_BYTES:
        raise ValueError("base58 id encoder requires exactly 16 bytes")
    n = int.from_bytes(raw, "big")
    chars: list[str] = []
    while n > 0:
        n, rem = divmod(n, 58)
        chars.append(BASE58_ALPHABET[rem])
    encoded = "".join(reversed(chars)) if chars else BASE58_ALPHABET[0]
    if len(encoded) > ID_LENGTH:
        raise ValueError("base58 encoded id exceeds fixed 22-char width")
    return (BASE58_ALPHABET[0] * (ID_LENGTH - len(encoded))) + encoded


def stable_uuid(*parts: str) -> uuid.UUID:
    """UUIDv5 over the '/'-joined parts; equal inputs always give the same id."""
    if not parts or not all(isinstance(p, str) and p for p in parts):
        raise ValueError("stable ids need at least one non-empty string part")
    return uuid.uuid5(DESCRIPTOR_NAMESPACE, "/".join(parts))


def stable_base58_22(*parts: str) -> str:
    return encode_16bytes_base58(stable_uuid(*parts).bytes)


def is_base58_22(value: str) -> bool:
    if not isinstance(value, str) or len(value) != ID_LENGTH:
        return False
    return all(ch in BASE58_ALPHABET for ch in value)
