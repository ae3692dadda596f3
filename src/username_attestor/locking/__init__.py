"""Keyed mutual exclusion for the identifier and transaction lock domains."""

from username_attestor.locking.keyed_mutex import (
    KeyedMutex,
    identifier_key,
    requester_key,
    tx_key,
)

__all__ = ["KeyedMutex", "identifier_key", "requester_key", "tx_key"]
