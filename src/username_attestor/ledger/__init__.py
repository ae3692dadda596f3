"""Ledger collaborator — protocol and the wallet daemon adapter."""

from username_attestor.ledger.client import Balance, IncomingPayment, LedgerClient, Output
from username_attestor.ledger.wallet_rpc import WalletRPCClient

__all__ = ["Balance", "IncomingPayment", "LedgerClient", "Output", "WalletRPCClient"]
