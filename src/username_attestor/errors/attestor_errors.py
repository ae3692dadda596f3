"""AttestorError — base exception class for all attestor errors."""

from __future__ import annotations

import copy
from typing import Any, Self


class AttestorError(Exception):
    """Base error for all username attestor operations.

    Attributes:
        message: Human-readable error description (operator facing).
        status_code: Suggested HTTP status code.
        code: Machine-readable error code string, also the text id used when
            the error is shown to a requester.
        params: Values substituted into the requester-facing text.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int = 500,
        code: str = "attestor-error",
        params: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.params: dict[str, Any] = dict(params or {})

    def with_params(self, **params: Any) -> Self:
        """Return a copy of this error carrying extra text parameters."""
        err = copy.copy(self)
        err.params = {**self.params, **params}
        return err
