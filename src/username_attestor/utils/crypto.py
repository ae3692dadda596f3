"""Hashing helpers for attestation payloads.

``object_hash`` reproduces the ledger's object hash: SHA-256 over the
object's source string, base64 encoded. The ledger recomputes
``payload_hash`` of every inline message with the same encoding and rejects
units where the two differ.
"""

from __future__ import annotations

import base64
import hashlib
from typing import Any

SOURCE_JOIN = "\x00"


def sha256(data: bytes) -> bytes:
    """Single SHA-256 hash."""
    return hashlib.sha256(data).digest()


def source_string(obj: Any) -> str:
    """Ledger source string of *obj*.

    Every scalar contributes a type tag (``s``, ``n``, ``b``) and its text;
    arrays are bracketed by ``[`` and ``]``; object keys are emitted sorted,
    each followed by its value. Components are joined with NUL.

    Raises:
        ValueError: For ``None``, empty arrays, empty objects and unsupported types.
    """
    components: list[str] = []

    def extract(value: Any) -> None:
        if value is None:
            msg = "null value in hashed object"
            raise ValueError(msg)
        if isinstance(value, bool):
            components.extend(("b", "true" if value else "false"))
        elif isinstance(value, str):
            components.extend(("s", value))
        elif isinstance(value, int):
            components.extend(("n", str(value)))
        elif isinstance(value, float):
            components.extend(("n", str(int(value)) if value.is_integer() else repr(value)))
        elif isinstance(value, (list, tuple)):
            if not value:
                msg = "empty array in hashed object"
                raise ValueError(msg)
            components.append("[")
            for item in value:
                extract(item)
            components.append("]")
        elif isinstance(value, dict):
            if not value:
                msg = "empty object in hashed object"
                raise ValueError(msg)
            for key in sorted(value):
                components.append(key)
                extract(value[key])
        else:
            msg = f"cannot hash {type(value).__name__}"
            raise ValueError(msg)

    extract(obj)
    return SOURCE_JOIN.join(components)


def object_hash(obj: Any) -> str:
    """Base64 SHA-256 of the ledger source string of *obj*."""
    return base64.b64encode(sha256(source_string(obj).encode("utf-8"))).decode("ascii")
