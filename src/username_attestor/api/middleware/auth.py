"""Callback authentication.

The chat gateway, the wallet notifier and operators call back into the
service with a shared token in ``x-callback-token``. When no token is
configured every request is accepted.
"""

from __future__ import annotations

import hmac

from username_attestor.errors.definitions import ErrUnauthorized

CALLBACK_TOKEN_HEADER = "x-callback-token"


def verify_callback_token(expected: str, presented: str) -> None:
    """Raise ``ErrUnauthorized`` unless *presented* matches *expected*.

    An empty *expected* token disables the check.
    """
    if not expected:
        return
    if not presented or not hmac.compare_digest(expected.encode(), presented.encode()):
        raise ErrUnauthorized
