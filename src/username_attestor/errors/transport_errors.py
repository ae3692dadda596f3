"""Transport errors from the ledger and chat collaborators."""

from __future__ import annotations

from username_attestor.errors.attestor_errors import AttestorError


class LedgerError(AttestorError):
    """Error from the wallet daemon."""

    def __init__(self, message: str, *, status_code: int = 502) -> None:
        super().__init__(message, status_code=status_code, code="ledger-error")


class ChatError(AttestorError):
    """Error from the chat gateway."""

    def __init__(self, message: str, *, status_code: int = 502) -> None:
        super().__init__(message, status_code=status_code, code="chat-error")
