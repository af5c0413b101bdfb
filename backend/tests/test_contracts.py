"""Tests for resolving contract deployments."""

import json

import pytest

from tests.chain_fakes import NFT_ADDRESS, TOKEN_ADDRESS
from tokenspectrum.config import Settings
from tokenspectrum.contracts import NFT_ABI, load_deployment
from tokenspectrum.errors import ConfigurationError

DEPLOYED_NFT = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
DEPLOYED_TOKEN = "0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512"


def write_descriptors(directory, nft=DEPLOYED_NFT, token=DEPLOYED_TOKEN, nft_abi=None):
    (directory / "TokenSpectrumNFT.json").write_text(json.dumps({"address": nft, "abi": nft_abi or []}))
    (directory / "TestToken.json").write_text(json.dumps({"address": token, "abi": []}))


def test_addresses_from_settings(test_settings):
    deployment = load_deployment(test_settings)

    assert deployment.nft_address == NFT_ADDRESS
    assert deployment.token_address == TOKEN_ADDRESS
    assert deployment.nft_abi == NFT_ABI


def test_addresses_are_checksummed():
    deployment = load_deployment(
        Settings(_env_file=None, nft_address=DEPLOYED_NFT.lower(), token_address=DEPLOYED_TOKEN.lower())
    )
    assert deployment.nft_address == DEPLOYED_NFT
    assert deployment.token_address == DEPLOYED_TOKEN


def test_addresses_from_deployments_dir(tmp_path):
    abi = [{"type": "function", "name": "mint", "inputs": [], "outputs": []}]
    write_descriptors(tmp_path, nft_abi=abi)

    deployment = load_deployment(Settings(_env_file=None, deployments_dir=str(tmp_path)))

    assert deployment.nft_address == DEPLOYED_NFT
    assert deployment.token_address == DEPLOYED_TOKEN
    assert deployment.nft_abi == abi


def test_settings_override_descriptors(tmp_path):
    write_descriptors(tmp_path)

    deployment = load_deployment(
        Settings(_env_file=None, deployments_dir=str(tmp_path), nft_address=NFT_ADDRESS)
    )

    assert deployment.nft_address == NFT_ADDRESS
    assert deployment.token_address == DEPLOYED_TOKEN


def test_missing_addresses():
    with pytest.raises(ConfigurationError, match="not configured"):
        load_deployment(Settings(_env_file=None))


def test_missing_descriptor(tmp_path):
    with pytest.raises(ConfigurationError, match="not found"):
        load_deployment(Settings(_env_file=None, deployments_dir=str(tmp_path)))


def test_invalid_descriptor(tmp_path):
    (tmp_path / "TokenSpectrumNFT.json").write_text("{not json")
    (tmp_path / "TestToken.json").write_text("{}")

    with pytest.raises(ConfigurationError, match="not valid JSON"):
        load_deployment(Settings(_env_file=None, deployments_dir=str(tmp_path)))


def test_malformed_address():
    with pytest.raises(ConfigurationError):
        load_deployment(Settings(_env_file=None, nft_address="0x1234", token_address=TOKEN_ADDRESS))
