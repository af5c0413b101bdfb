"""Read-only queries against the NFT and confidential token contracts."""

from __future__ import annotations

import asyncio

import aiohttp
import structlog
from eth_utils import to_checksum_address
from web3 import AsyncWeb3
from web3.exceptions import ContractLogicError, Web3Exception

from tokenspectrum.config import Settings
from tokenspectrum.contracts import ContractDeployment, load_deployment
from tokenspectrum.errors import ChainRejected, NetworkError, WrongNetwork
from tokenspectrum.models.asset import AssetRecord, ConfidentialBalance, Portfolio, normalize_handle
from tokenspectrum.services.wallet_service import revert_reason

logger = structlog.get_logger()


def connect(settings: Settings) -> AsyncWeb3:
    return AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(settings.rpc_url))


def check_network(chain_id: int, expected: int) -> None:
    if chain_id != expected:
        raise WrongNetwork(f"Connected to chain {chain_id}; switch to chain {expected}.")


async def _call(fn):
    try:
        return await fn.call()
    except ContractLogicError as e:
        raise ChainRejected(revert_reason(e))
    except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
        raise NetworkError(f"Could not reach RPC endpoint: {e}")
    except Web3Exception as e:
        raise NetworkError(str(e))


class ChainReader:
    """
    Reads ownership, claim flags and encrypted handles.

    Holds no state between calls; `refresh` is safe to call repeatedly and
    concurrently.
    """

    def __init__(self, nft, token):
        self.nft = nft
        self.token = token

    @classmethod
    def from_deployment(cls, w3: AsyncWeb3, deployment: ContractDeployment) -> "ChainReader":
        nft = w3.eth.contract(address=deployment.nft_address, abi=deployment.nft_abi)
        token = w3.eth.contract(address=deployment.token_address, abi=deployment.token_abi)
        return cls(nft, token)

    @classmethod
    def from_settings(cls, settings: Settings, w3: AsyncWeb3) -> "ChainReader":
        return cls.from_deployment(w3, load_deployment(settings))

    @property
    def nft_address(self) -> str:
        return self.nft.address

    @property
    def token_address(self) -> str:
        return self.token.address

    async def balance_of(self, owner: str) -> int:
        return int(await _call(self.nft.functions.balanceOf(owner)))

    async def token_of_owner_by_index(self, owner: str, index: int) -> int:
        return int(await _call(self.nft.functions.tokenOfOwnerByIndex(owner, index)))

    async def is_claimed(self, token_id: int) -> bool:
        return bool(await _call(self.nft.functions.isClaimed(token_id)))

    async def encrypted_test_of(self, token_id: int) -> str:
        return normalize_handle(await _call(self.nft.functions.encryptedTestOf(token_id)))

    async def confidential_balance_of(self, owner: str) -> str:
        return normalize_handle(await _call(self.token.functions.confidentialBalanceOf(owner)))

    async def read_asset(self, token_id: int) -> AssetRecord:
        claimed, handle = await asyncio.gather(
            self.is_claimed(token_id), self.encrypted_test_of(token_id)
        )
        return AssetRecord(token_id=token_id, encrypted_test=handle, claimed=claimed)

    async def refresh(self, owner: str) -> Portfolio:
        """Read every token of `owner` plus the confidential balance into a new Portfolio."""
        owner = to_checksum_address(owner)
        count = await self.balance_of(owner)
        token_ids = [await self.token_of_owner_by_index(owner, index) for index in range(count)]
        rows = await asyncio.gather(*(self.read_asset(token_id) for token_id in token_ids))
        balance_handle = await self.confidential_balance_of(owner)

        logger.debug("portfolio_refreshed", owner=owner, tokens=count)
        return Portfolio(
            owner=owner,
            rows=tuple(rows),
            balance=ConfidentialBalance(owner=owner, encrypted_handle=balance_handle),
        )
