"""Username attestation service.

Sells usernames against a one-time payment and posts a signed attestation
binding the username to the payer's address once the payment is final.
"""

__version__ = "0.1.0"
