"""
Contract ABIs and deployment provisioning.

Addresses come either from settings or from a hardhat-deploy directory
(`<deployments_dir>/TokenSpectrumNFT.json`, `<deployments_dir>/TestToken.json`),
which is what the contract sync tooling produces. ABIs found in the descriptors
take precedence over the built-in fragments below.
"""

import json
from dataclasses import dataclass
from pathlib import Path

from eth_utils import is_address, to_checksum_address

from tokenspectrum.config import Settings
from tokenspectrum.errors import ConfigurationError

NFT_CONTRACT_NAME = "TokenSpectrumNFT"
TOKEN_CONTRACT_NAME = "TestToken"

NFT_ABI = [
    {
        "type": "function",
        "name": "balanceOf",
        "stateMutability": "view",
        "inputs": [{"name": "owner", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "name": "tokenOfOwnerByIndex",
        "stateMutability": "view",
        "inputs": [
            {"name": "owner", "type": "address"},
            {"name": "index", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "name": "isClaimed",
        "stateMutability": "view",
        "inputs": [{"name": "tokenId", "type": "uint256"}],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "type": "function",
        "name": "encryptedTestOf",
        "stateMutability": "view",
        "inputs": [{"name": "tokenId", "type": "uint256"}],
        "outputs": [{"name": "", "type": "bytes32"}],
    },
    {
        "type": "function",
        "name": "mint",
        "stateMutability": "nonpayable",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "name": "claim",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "tokenId", "type": "uint256"}],
        "outputs": [],
    },
    {
        "type": "event",
        "name": "Transfer",
        "anonymous": False,
        "inputs": [
            {"name": "from", "type": "address", "indexed": True},
            {"name": "to", "type": "address", "indexed": True},
            {"name": "tokenId", "type": "uint256", "indexed": True},
        ],
    },
]

TOKEN_ABI = [
    {
        "type": "function",
        "name": "confidentialBalanceOf",
        "stateMutability": "view",
        "inputs": [{"name": "account", "type": "address"}],
        "outputs": [{"name": "", "type": "bytes32"}],
    },
]


@dataclass(frozen=True, slots=True)
class ContractDeployment:
    nft_address: str
    token_address: str
    nft_abi: list
    token_abi: list


def _read_descriptor(directory: Path, name: str) -> dict:
    path = directory / f"{name}.json"
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise ConfigurationError(f"Deployment descriptor not found: {path}")
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Deployment descriptor {path} is not valid JSON: {e}")


def _require_address(value: str | None, label: str) -> str:
    if not value or not is_address(value):
        raise ConfigurationError(f"{label} address is not configured")
    return to_checksum_address(value)


def load_deployment(settings: Settings) -> ContractDeployment:
    """
    Resolve contract addresses and ABIs.

    Explicit settings win over descriptor files. Raises ConfigurationError when
    either address is missing or malformed.
    """
    nft_address, token_address = settings.nft_address, settings.token_address
    nft_abi, token_abi = NFT_ABI, TOKEN_ABI

    if settings.deployments_dir:
        directory = Path(settings.deployments_dir)
        nft_descriptor = _read_descriptor(directory, NFT_CONTRACT_NAME)
        token_descriptor = _read_descriptor(directory, TOKEN_CONTRACT_NAME)
        nft_address = nft_address or nft_descriptor.get("address")
        token_address = token_address or token_descriptor.get("address")
        nft_abi = nft_descriptor.get("abi") or nft_abi
        token_abi = token_descriptor.get("abi") or token_abi

    return ContractDeployment(
        nft_address=_require_address(nft_address, NFT_CONTRACT_NAME),
        token_address=_require_address(token_address, TOKEN_CONTRACT_NAME),
        nft_abi=nft_abi,
        token_abi=token_abi,
    )

