from __future__ import annotations

import enum
from collections.abc import Mapping
from dataclasses import dataclass, replace

HANDLE_BYTES = 32
ZERO_HANDLE = "0x" + "00" * HANDLE_BYTES


def normalize_handle(value: bytes | str) -> str:
    """Return an encrypted handle as a lowercase 0x-prefixed 64-hex-digit string."""
    if isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
    else:
        text = value[2:] if value.startswith(("0x", "0X")) else value
        try:
            raw = bytes.fromhex(text)
        except ValueError:
            raise ValueError(f"Invalid encrypted handle: {value!r}")
    if len(raw) != HANDLE_BYTES:
        raise ValueError(f"Encrypted handle must be {HANDLE_BYTES} bytes, got {len(raw)}")
    return "0x" + raw.hex()


class TokenState(str, enum.Enum):
    UNMINTED = "unminted"
    MINTED = "minted"
    CLAIMED = "claimed"


@dataclass(frozen=True, slots=True)
class AssetRecord:
    token_id: int
    encrypted_test: str
    claimed: bool
    decrypted_test: int | None = None

    @property
    def state(self) -> TokenState:
        return TokenState.CLAIMED if self.claimed else TokenState.MINTED

    @property
    def can_claim(self) -> bool:
        # Optimistic only; the contract is the authority on double claims
        return not self.claimed


@dataclass(frozen=True, slots=True)
class ConfidentialBalance:
    owner: str
    encrypted_handle: str
    decrypted_value: int | None = None

    @property
    def is_uninitialized(self) -> bool:
        return self.encrypted_handle == ZERO_HANDLE


@dataclass(frozen=True, slots=True)
class Portfolio:
    """
    Everything shown for one owner: NFT rows keyed by token id and the TEST balance.

    A Portfolio is never mutated. Refresh builds a new one from chain reads and
    decryption results are applied by building another copy, so a reader never
    observes a half-updated row.
    """

    owner: str
    rows: tuple[AssetRecord, ...] = ()
    balance: ConfidentialBalance | None = None

    def row(self, token_id: int) -> AssetRecord | None:
        for record in self.rows:
            if record.token_id == token_id:
                return record
        return None

    @property
    def token_ids(self) -> list[int]:
        return [record.token_id for record in self.rows]

    def with_decrypted(self, values: Mapping[str, int]) -> Portfolio:
        """
        Apply cleartext values keyed by handle.

        Only rows whose current handle matches a decrypted handle are filled in;
        a value decrypted for a stale handle is dropped.
        """
        rows = tuple(
            replace(record, decrypted_test=values[record.encrypted_test])
            if record.encrypted_test in values
            else record
            for record in self.rows
        )
        balance = self.balance
        if balance is not None and balance.encrypted_handle in values:
            balance = replace(balance, decrypted_value=values[balance.encrypted_handle])
        return Portfolio(owner=self.owner, rows=rows, balance=balance)
