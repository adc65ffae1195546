"""Proof ownership across direct-account and wallet-based identity."""
from __future__ import annotations

from neuramark_identity.ownership.resolver import OwnershipResolver, OwnershipResult

__all__ = ["OwnershipResolver", "OwnershipResult"]
