import pytest
from eth_account import Account
from fastapi.testclient import TestClient

from tests.chain_fakes import (
    NFT_ADDRESS,
    SEPOLIA_CHAIN_ID,
    TOKEN_ADDRESS,
    FakeConfidentialChain,
    FakeContract,
    FakeRelayer,
    FakeWallet,
)
from tokenspectrum.config import Settings
from tokenspectrum.main import app
from tokenspectrum.middleware.rate_limit import limiter
from tokenspectrum.services.chain_service import ChainReader
from tokenspectrum.services.lifecycle_service import AssetLifecycleController
from tokenspectrum.services.relayer_service import RelayerClient
from tokenspectrum.session import get_controller


@pytest.fixture
def test_settings():
    return Settings(
        _env_file=None,
        relayer_url="https://relayer.test",
        nft_address=NFT_ADDRESS,
        token_address=TOKEN_ADDRESS,
    )


@pytest.fixture
def chain():
    """A fresh in-memory confidential chain for each test."""
    return FakeConfidentialChain(seed=1234)


@pytest.fixture
def relayer(chain):
    return FakeRelayer(chain)


@pytest.fixture
def alice():
    return Account.create()


@pytest.fixture
def bob():
    return Account.create()


@pytest.fixture
def reader(chain):
    return ChainReader(FakeContract(chain, NFT_ADDRESS), FakeContract(chain, TOKEN_ADDRESS))


@pytest.fixture
def relayer_client(test_settings, relayer):
    return RelayerClient(test_settings, transport=relayer.transport)


@pytest.fixture
def make_controller(chain, reader, relayer_client):
    """Build a controller for one user session on the shared fake chain."""

    def _make(account=None, *, chain_id=SEPOLIA_CHAIN_ID, configured=True, **wallet_kwargs):
        wallet = FakeWallet(chain, account, chain_id=chain_id, **wallet_kwargs) if account else None
        return AssetLifecycleController(
            reader if configured else None,
            wallet,
            relayer_client,
            expected_chain_id=SEPOLIA_CHAIN_ID,
        )

    return _make


@pytest.fixture
def client(make_controller, alice):
    """Create a test client acting as alice with rate limiting disabled."""

    def override_get_controller():
        return make_controller(alice)

    app.dependency_overrides[get_controller] = override_get_controller
    limiter.enabled = False

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    limiter.enabled = True
