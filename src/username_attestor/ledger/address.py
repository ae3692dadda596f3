"""Address format checks."""

from __future__ import annotations

import re

# 32 characters of RFC 4648 base32, upper case
_ADDRESS_RE = re.compile(r"^[A-Z2-7]{32}$")


def validate_address(address: str) -> bool:
    """Check if *address* is shaped like a ledger address."""
    return bool(_ADDRESS_RE.fullmatch(address))
