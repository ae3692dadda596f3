"""Requester-facing texts.

``render(message_id, params, locale)`` is a pure lookup + format; unknown
locales fall back to English and unknown ids render as the id itself.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from username_attestor.errors.attestor_errors import AttestorError

DEFAULT_LOCALE = "en"
AMOUNT_UNIT = "bytes"

_EN: dict[str, str] = {
    "greeting": (
        "Here you can attest your username.\n\n"
        "Your username will be attested on the public ledger and bound to your address. "
        "The price of a username depends on its length: {price_lines}"
    ),
    "price-line": "{min_length}+ characters: {amount} " + AMOUNT_UNIT,
    "not-for-sale-line": "{min_length}+ characters: not for sale",
    "select-language": "Please select your language:",
    "back-to-languages": "Go back to language selection",
    "insert-my-address": (
        "Please send me your address that you wish to attest "
        "(click ... and Insert my address)."
    ),
    "going-to-attest-address": "Thanks, going to attest your address: {address}.",
    "insert-my-username": "Please send me the username you want to attest.",
    "wrong-username-format": (
        "Wrong username format. A username is 1 to 32 characters: "
        "latin letters, digits, '-' and '_'."
    ),
    "going-to-attest-username": (
        "Going to attest username @{username}, the price is {price} " + AMOUNT_UNIT + "."
    ),
    "please-pay": "Please pay for the attestation: {pay_link}",
    "received-your-payment": (
        "Received your payment of {amount} " + AMOUNT_UNIT + " for @{username}. "
        "It is not final yet, I'll let you know when it is confirmed."
    ),
    "payment-is-confirmed": "Your payment is confirmed.",
    "in-attestation": "Username @{username} is being attested, please wait.",
    "username-attested": (
        "Your username @{username} is now attested, see the attestation transaction {unit}."
    ),
    "username-already-attested": "Username @{username} was already attested on {attestation_date}.",
    "reservation-will-expire": (
        "Your reservation of @{username} expires soon. Pay now to keep it, "
        "otherwise the username becomes available to others."
    ),
    "bounced-payment": (
        "Your payment was returned to you, minus a {bounce_fee} " + AMOUNT_UNIT + " fee."
    ),
    # -- errors ------------------------------------------------------------
    "not-for-sale": "Username @{username} is not for sale.",
    "identifier-taken": "Username @{username} is already taken.",
    "awaiting-confirmation": (
        "Your payment for @{username} is awaiting confirmation, "
        "please wait until it is attested."
    ),
    "limit-exceeded": "You can attest at most {limit} usernames.",
    "limit-exceeded:address": "This address already has an attested username.",
    "wrong-asset": "Received payment in a wrong asset, please pay in " + AMOUNT_UNIT + ".",
    "too-late": "Your payment arrived too late.\nUsername @{username} is already taken.",
    "underpaid": (
        "Received {received} " + AMOUNT_UNIT + ", which is less than the expected "
        "{price} " + AMOUNT_UNIT + ".\n\nPlease pay for the attestation: {pay_link}"
    ),
    "wrong-author:multiple": (
        "Received a payment from multiple addresses. "
        "Please switch your wallet to single-address mode and insert your address again."
    ),
    "wrong-author:mismatch": (
        "Received a payment not from the expected address {address}. "
        "Please switch your wallet to single-address mode and insert your address again."
    ),
}

_LOCALES: dict[str, dict[str, str]] = {"en": _EN}


class _KeepMissing(dict):
    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


def render(
    message_id: str, params: dict[str, Any] | None = None, locale: str = DEFAULT_LOCALE
) -> str:
    """Render *message_id* in *locale* with *params* substituted."""
    table = _LOCALES.get(locale, _EN)
    template = table.get(message_id) or _EN.get(message_id)
    if template is None:
        return message_id
    return template.format_map(_KeepMissing(params or {}))


def error_message_id(err: AttestorError) -> str:
    """Text id for an error; a ``scope`` parameter selects a variant."""
    scope = err.params.get("scope")
    return f"{err.code}:{scope}" if scope else err.code


def render_error(err: AttestorError, locale: str = DEFAULT_LOCALE) -> str:
    return render(error_message_id(err), err.params, locale)


def command_button(label: str, command: str | None = None) -> str:
    return f"[{label}](command:{command or label})"


def pay_link(address: str, amount: int, payer_address: str | None) -> str:
    link = f"[attestation payment](payment:{address}?amount={amount}"
    if payer_address:
        link += f"&single_address=single{payer_address}"
    return link + ")"


def price_lines(lines: list[tuple[int, int]], locale: str = DEFAULT_LOCALE) -> str:
    rendered = [
        render("price-line", {"min_length": n, "amount": amount}, locale)
        if amount
        else render("not-for-sale-line", {"min_length": n}, locale)
        for n, amount in lines
    ]
    return ",\n".join(rendered) + "."


def available_locales() -> list[str]:
    return sorted(_LOCALES)
