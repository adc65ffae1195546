"""Anchor facts tying a proof to the on-chain proof registry."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from neuramark_identity.did.document import format_timestamp
from neuramark_identity.errors import MalformedInputError
from neuramark_identity.stores.proofs import Proof

DEFAULT_NETWORK: str = "Sepolia"


@dataclass(frozen=True)
class Anchor:
    """Immutable on-chain facts for one registered proof.

    Parameters
    ----------
    network:
        Chain name (e.g. ``"Sepolia"``).
    contract_address:
        Address of the proof registry contract.
    transaction_hash:
        Registration transaction hash.
    timestamp:
        ISO 8601 registration time.
    """

    network: str
    contract_address: str
    transaction_hash: str
    timestamp: str


@runtime_checkable
class AnchorSource(Protocol):
    """The blockchain registry seam: yields anchor facts for a proof."""

    def anchor_for(self, proof: Proof) -> Anchor: ...


class ConfiguredAnchorSource:
    """Builds anchors from the registry's configured address and the stored proof.

    The proof record already carries the transaction hash and registration
    time written when the on-chain registration completed, so no chain
    round-trip is needed.

    Raises
    ------
    MalformedInputError
        On construction, if *contract_address* is empty.
    """

    def __init__(self, contract_address: str, network: str = DEFAULT_NETWORK) -> None:
        if not contract_address:
            raise MalformedInputError("Contract address not configured.")
        self._contract_address = contract_address
        self._network = network

    def anchor_for(self, proof: Proof) -> Anchor:
        return Anchor(
            network=self._network,
            contract_address=self._contract_address,
            transaction_hash=proof.tx_hash,
            timestamp=format_timestamp(proof.created_at),
        )


__all__ = ["Anchor", "AnchorSource", "ConfiguredAnchorSource", "DEFAULT_NETWORK"]
