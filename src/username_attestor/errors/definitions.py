"""All error definitions raised by the reservation, payment and attestation flows."""

from __future__ import annotations

from username_attestor.errors.attestor_errors import AttestorError

# -- Reservation -----------------------------------------------------------

ErrNotForSale = AttestorError("identifier is not for sale", status_code=422, code="not-for-sale")
ErrIdentifierTaken = AttestorError(
    "identifier is already taken", status_code=409, code="identifier-taken"
)
ErrAwaitingConfirmation = AttestorError(
    "a previous payment is awaiting confirmation",
    status_code=409,
    code="awaiting-confirmation",
)
ErrLimitExceeded = AttestorError(
    "identifier limit exceeded", status_code=422, code="limit-exceeded"
)

# -- Payment validation ----------------------------------------------------

ErrWrongAsset = AttestorError("payment in unexpected asset", status_code=422, code="wrong-asset")
ErrTooLate = AttestorError(
    "payment arrived after the reservation expired", status_code=409, code="too-late"
)
ErrUnderpaid = AttestorError("payment is below the price", status_code=422, code="underpaid")
ErrWrongAuthor = AttestorError(
    "payment not sent from the claimed address", status_code=422, code="wrong-author"
)

# -- Attestation -----------------------------------------------------------

ErrComposeOrBroadcastFailure = AttestorError(
    "failed to compose or broadcast attestation",
    status_code=502,
    code="compose-or-broadcast-failure",
)

# -- Not Found -------------------------------------------------------------

ErrPaymentNotFound = AttestorError("payment not found", status_code=404, code="payment-not-found")
ErrReservationNotFound = AttestorError(
    "reservation not found", status_code=404, code="reservation-not-found"
)

# -- Auth ------------------------------------------------------------------

ErrUnauthorized = AttestorError("unauthorized", status_code=401, code="unauthorized")
