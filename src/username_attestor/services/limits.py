"""Per-requester and per-payer caps on paid identifiers."""

from __future__ import annotations

from typing import TYPE_CHECKING

from username_attestor.errors.definitions import ErrLimitExceeded

if TYPE_CHECKING:
    from username_attestor.errors.attestor_errors import AttestorError
    from username_attestor.repository.reservations import ReservationRepository


async def check_limits(
    reservations: ReservationRepository,
    requester_id: str,
    payer_address: str,
    *,
    max_per_requester: int,
) -> AttestorError | None:
    """Return ``LimitExceeded`` if either cap is reached, else None.

    A requester may pay for at most *max_per_requester* identifiers; a payer
    address may pay for one identifier, ever.
    """
    if await reservations.count_paid_for_requester(requester_id) >= max_per_requester:
        return ErrLimitExceeded.with_params(limit=max_per_requester)
    if await reservations.count_paid_for_payer(payer_address) >= 1:
        return ErrLimitExceeded.with_params(scope="address", limit=1)
    return None
