"""Wallet boundary: typed-data signing, transaction submission, account and chain reporting."""

from __future__ import annotations

import asyncio
from typing import Any, Protocol

import aiohttp
import structlog
from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_account.signers.local import LocalAccount
from web3 import AsyncWeb3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception

from tokenspectrum.config import Settings
from tokenspectrum.errors import ChainRejected, NetworkError, WalletUnavailable

logger = structlog.get_logger()


class Wallet(Protocol):
    async def get_address(self) -> str: ...

    async def chain_id(self) -> int: ...

    async def sign_typed_data(self, domain: dict, types: dict, message: dict) -> str: ...

    async def send_transaction(self, call: Any) -> dict: ...


def revert_reason(error: ContractLogicError) -> str:
    message = getattr(error, "message", None) or str(error)
    return message or "execution reverted"


class LocalWallet:
    """Wallet backed by an in-process eth-account key and an AsyncWeb3 connection."""

    def __init__(self, account: LocalAccount, w3: AsyncWeb3, confirmation_timeout: int = 180):
        self._account = account
        self._w3 = w3
        self._confirmation_timeout = confirmation_timeout

    @classmethod
    def from_settings(cls, settings: Settings, w3: AsyncWeb3) -> "LocalWallet":
        if settings.wallet_private_key is None:
            raise WalletUnavailable("Connect a wallet first.")
        account = Account.from_key(settings.wallet_private_key.get_secret_value())
        return cls(account, w3, confirmation_timeout=settings.tx_confirmation_timeout_seconds)

    async def get_address(self) -> str:
        return self._account.address

    async def chain_id(self) -> int:
        try:
            return await self._w3.eth.chain_id
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            raise NetworkError(f"Could not reach RPC endpoint: {e}")
        except Web3Exception as e:
            raise NetworkError(str(e))

    async def sign_typed_data(self, domain: dict, types: dict, message: dict) -> str:
        signable = encode_typed_data(domain_data=domain, message_types=types, message_data=message)
        signed = self._account.sign_message(signable)
        return "0x" + bytes(signed.signature).hex()

    async def send_transaction(self, call) -> dict:
        """
        Build, sign and submit a contract call, then wait for inclusion.

        Reverts detected at gas estimation or in the receipt raise ChainRejected.
        """
        address = self._account.address
        try:
            tx = await call.build_transaction(
                {
                    "from": address,
                    "nonce": await self._w3.eth.get_transaction_count(address),
                    "chainId": await self._w3.eth.chain_id,
                }
            )
            signed = self._account.sign_transaction(tx)
            tx_hash = await self._w3.eth.send_raw_transaction(signed.raw_transaction)
            logger.info("transaction_submitted", tx_hash="0x" + bytes(tx_hash).hex())
            receipt = await self._w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self._confirmation_timeout
            )
        except ContractLogicError as e:
            raise ChainRejected(revert_reason(e))
        except TimeExhausted:
            raise NetworkError("Timed out waiting for transaction confirmation")
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            raise NetworkError(f"Could not reach RPC endpoint: {e}")
        except Web3Exception as e:
            raise ChainRejected(str(e))

        if receipt.get("status") != 1:
            raise ChainRejected("Transaction reverted")
        return dict(receipt)
