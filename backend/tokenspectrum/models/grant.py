from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey
from eth_utils import to_checksum_address

from tokenspectrum.errors import AuthorizationDenied
from tokenspectrum.models.asset import normalize_handle

SECONDS_PER_DAY = 86_400


@dataclass(frozen=True, slots=True)
class HandleContractPair:
    handle: str
    contract_address: str

    @staticmethod
    def of(handle: bytes | str, contract_address: str) -> "HandleContractPair":
        return HandleContractPair(
            handle=normalize_handle(handle),
            contract_address=to_checksum_address(contract_address),
        )

    def to_wire(self) -> dict:
        return {"handle": self.handle, "contractAddress": self.contract_address}


@dataclass(slots=True)
class AuthorizationGrant:
    """
    Signed, time-bounded capability to decrypt a fixed set of handles.

    Built fresh for each decryption request and consumed by exactly one relayer
    round trip. The ephemeral private key only unseals the relayer response; it
    is never serialized and is dropped as soon as it has been handed out.
    """

    public_key: bytes
    owner_address: str
    contract_addresses: tuple[str, ...]
    handle_contract_pairs: frozenset[HandleContractPair]
    start_timestamp: int
    duration_days: int
    signature: str
    _private_key: X25519PrivateKey | None = field(default=None, repr=False, compare=False)

    @property
    def expires_at(self) -> int:
        return self.start_timestamp + self.duration_days * SECONDS_PER_DAY

    @property
    def wire_signature(self) -> str:
        """Signature hex as the relayer expects it, without the 0x prefix."""
        return self.signature.removeprefix("0x")

    @property
    def consumed(self) -> bool:
        return self._private_key is None

    def covers(self, pairs: Iterable[HandleContractPair]) -> bool:
        return all(
            pair in self.handle_contract_pairs and pair.contract_address in self.contract_addresses
            for pair in pairs
        )

    def consume(self) -> X25519PrivateKey:
        if self._private_key is None:
            raise AuthorizationDenied("Authorization grant has already been used")
        private_key, self._private_key = self._private_key, None
        return private_key
