"""Tests for building EIP-712 user-decryption grants."""

import asyncio
import time
from unittest.mock import patch

import pytest
from eth_account import Account
from eth_account.messages import encode_typed_data

from tests.chain_fakes import NFT_ADDRESS, TOKEN_ADDRESS, FakeWallet
from tokenspectrum.config import settings
from tokenspectrum.errors import AuthorizationDenied, WalletUnavailable
from tokenspectrum.models.grant import HandleContractPair
from tokenspectrum.services.grant_service import build_grant

HANDLE = "0x" + "01" * 32


@pytest.fixture
def pair():
    return HandleContractPair.of(HANDLE, NFT_ADDRESS)


class TestBuildGrant:
    @pytest.mark.asyncio
    async def test_grant_is_signed_by_owner(self, chain, alice, pair):
        wallet = FakeWallet(chain, alice)

        grant = await build_grant(wallet, [NFT_ADDRESS], [pair])

        assert grant.owner_address == alice.address
        assert grant.contract_addresses == (NFT_ADDRESS,)
        assert grant.handle_contract_pairs == frozenset({pair})
        assert grant.duration_days == 10
        assert abs(grant.start_timestamp - int(time.time())) <= 5

        request = wallet.signature_requests[0]
        signable = encode_typed_data(
            domain_data=request["domain"],
            message_types=request["types"],
            message_data=request["message"],
        )
        assert Account.recover_message(signable, signature=grant.signature) == alice.address

    @pytest.mark.asyncio
    async def test_typed_data_binds_key_contracts_and_window(self, chain, alice, pair):
        wallet = FakeWallet(chain, alice)

        grant = await build_grant(wallet, [NFT_ADDRESS], [pair], now=1_700_000_000, duration_days=3)

        request = wallet.signature_requests[0]
        assert request["domain"]["name"] == "Decryption"
        assert request["domain"]["chainId"] == settings.gateway_chain_id
        assert list(request["types"]) == ["UserDecryptRequestVerification"]
        message = request["message"]
        assert message["publicKey"] == grant.public_key
        assert message["contractAddresses"] == [NFT_ADDRESS]
        assert message["startTimestamp"] == 1_700_000_000
        assert message["durationDays"] == 3
        assert grant.expires_at == 1_700_000_000 + 3 * 86_400

    @pytest.mark.asyncio
    async def test_every_grant_has_a_fresh_keypair(self, chain, alice, pair):
        wallet = FakeWallet(chain, alice)

        first = await build_grant(wallet, [NFT_ADDRESS], [pair])
        second = await build_grant(wallet, [NFT_ADDRESS], [pair])

        assert first.public_key != second.public_key

    @pytest.mark.asyncio
    async def test_duration_follows_settings(self, chain, alice, pair):
        with patch.object(settings, "grant_duration_days", 2):
            grant = await build_grant(FakeWallet(chain, alice), [NFT_ADDRESS], [pair])
        assert grant.duration_days == 2

    @pytest.mark.asyncio
    async def test_rejected_signature_is_authorization_denied(self, chain, alice, pair):
        wallet = FakeWallet(chain, alice, reject_signing=True)

        with pytest.raises(AuthorizationDenied, match="rejected"):
            await build_grant(wallet, [NFT_ADDRESS], [pair])

    @pytest.mark.asyncio
    async def test_signature_timeout_is_authorization_denied(self, chain, alice, pair):
        wallet = FakeWallet(chain, alice)

        async def never_answers(*args):
            await asyncio.sleep(10)

        wallet.sign_typed_data = never_answers
        with patch.object(settings, "signature_timeout_seconds", 0.01):
            with pytest.raises(AuthorizationDenied, match="timed out"):
                await build_grant(wallet, [NFT_ADDRESS], [pair])

    @pytest.mark.asyncio
    async def test_missing_wallet(self, pair):
        with pytest.raises(WalletUnavailable):
            await build_grant(None, [NFT_ADDRESS], [pair])

    @pytest.mark.asyncio
    async def test_requires_contracts_and_pairs(self, chain, alice, pair):
        wallet = FakeWallet(chain, alice)

        with pytest.raises(ValueError):
            await build_grant(wallet, [], [pair])
        with pytest.raises(ValueError):
            await build_grant(wallet, [NFT_ADDRESS], [])
        assert wallet.signature_requests == []

    @pytest.mark.asyncio
    async def test_pairs_must_stay_inside_allowlist(self, chain, alice, pair):
        wallet = FakeWallet(chain, alice)

        with pytest.raises(ValueError, match="outside the allowlist"):
            await build_grant(wallet, [TOKEN_ADDRESS], [pair])


class TestGrantValue:
    @pytest.mark.asyncio
    async def test_private_key_is_handed_out_once(self, chain, alice, pair):
        grant = await build_grant(FakeWallet(chain, alice), [NFT_ADDRESS], [pair])

        assert not grant.consumed
        grant.consume()
        assert grant.consumed
        with pytest.raises(AuthorizationDenied, match="already been used"):
            grant.consume()

    @pytest.mark.asyncio
    async def test_repr_hides_private_key(self, chain, alice, pair):
        grant = await build_grant(FakeWallet(chain, alice), [NFT_ADDRESS], [pair])
        assert "private" not in repr(grant).lower()

    @pytest.mark.asyncio
    async def test_wire_signature_drops_prefix(self, chain, alice, pair):
        grant = await build_grant(FakeWallet(chain, alice), [NFT_ADDRESS], [pair])

        assert grant.signature.startswith("0x")
        assert not grant.wire_signature.startswith("0x")
        assert len(grant.wire_signature) == 130

    @pytest.mark.asyncio
    async def test_covers_only_signed_pairs(self, chain, alice, pair):
        grant = await build_grant(FakeWallet(chain, alice), [NFT_ADDRESS], [pair])

        assert grant.covers([pair])
        assert not grant.covers([HandleContractPair.of("0x" + "02" * 32, NFT_ADDRESS)])
        assert not grant.covers([HandleContractPair.of(HANDLE, TOKEN_ADDRESS)])
