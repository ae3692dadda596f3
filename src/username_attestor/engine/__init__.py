"""Engine — composition root owning the collaborators and services."""

from __future__ import annotations

from username_attestor.engine.client import AttestorEngine

__all__ = ["AttestorEngine"]
