"""Tests for chain reads and the portfolio view model."""

import pytest

from tokenspectrum.errors import ChainRejected, WrongNetwork
from tokenspectrum.models.asset import (
    ZERO_HANDLE,
    AssetRecord,
    ConfidentialBalance,
    Portfolio,
    TokenState,
    normalize_handle,
)
from tokenspectrum.services.chain_service import check_network


class TestRefresh:
    @pytest.mark.asyncio
    async def test_empty_portfolio(self, reader, alice):
        portfolio = await reader.refresh(alice.address)

        assert portfolio.owner == alice.address
        assert portfolio.rows == ()
        assert portfolio.balance.encrypted_handle == ZERO_HANDLE
        assert portfolio.balance.is_uninitialized

    @pytest.mark.asyncio
    async def test_enumerates_owned_tokens_only(self, chain, reader, alice, bob):
        first = chain.mint(alice.address)
        chain.mint(bob.address)
        third = chain.mint(alice.address)

        portfolio = await reader.refresh(alice.address)

        assert portfolio.token_ids == [first, third]
        for record in portfolio.rows:
            assert record.encrypted_test == chain.attribute_handles[record.token_id]
            assert record.encrypted_test != ZERO_HANDLE
            assert record.state is TokenState.MINTED
            assert record.decrypted_test is None

    @pytest.mark.asyncio
    async def test_reflects_claims_and_new_balance_handle(self, chain, reader, alice):
        token_id = chain.mint(alice.address)
        before = await reader.refresh(alice.address)

        chain.claim(alice.address, token_id)
        after = await reader.refresh(alice.address)

        assert after.row(token_id).claimed
        assert after.row(token_id).state is TokenState.CLAIMED
        assert not after.row(token_id).can_claim
        assert after.balance.encrypted_handle != before.balance.encrypted_handle
        assert not after.balance.is_uninitialized

    @pytest.mark.asyncio
    async def test_refresh_is_idempotent(self, chain, reader, alice):
        chain.mint(alice.address)
        assert await reader.refresh(alice.address) == await reader.refresh(alice.address)

    @pytest.mark.asyncio
    async def test_revert_is_chain_rejected(self, reader):
        with pytest.raises(ChainRejected, match="nonexistent token"):
            await reader.is_claimed(999)


class TestPortfolio:
    def _portfolio(self):
        return Portfolio(
            owner="0xowner",
            rows=(
                AssetRecord(token_id=1, encrypted_test="0x" + "01" * 32, claimed=False),
                AssetRecord(token_id=2, encrypted_test="0x" + "02" * 32, claimed=True),
            ),
            balance=ConfidentialBalance(owner="0xowner", encrypted_handle="0x" + "03" * 32),
        )

    def test_with_decrypted_returns_new_portfolio(self):
        portfolio = self._portfolio()

        updated = portfolio.with_decrypted({"0x" + "01" * 32: 55, "0x" + "03" * 32: 70})

        assert updated.row(1).decrypted_test == 55
        assert updated.row(2).decrypted_test is None
        assert updated.balance.decrypted_value == 70
        # The source portfolio is untouched
        assert portfolio.row(1).decrypted_test is None
        assert portfolio.balance.decrypted_value is None

    def test_stale_handles_are_ignored(self):
        portfolio = self._portfolio()

        updated = portfolio.with_decrypted({"0x" + "ff" * 32: 12})

        assert updated == portfolio


class TestHandles:
    def test_normalize_bytes_and_hex(self):
        raw = bytes(range(32))
        assert normalize_handle(raw) == "0x" + raw.hex()
        assert normalize_handle("0X" + raw.hex().upper()) == "0x" + raw.hex()

    def test_rejects_wrong_length(self):
        with pytest.raises(ValueError, match="32 bytes"):
            normalize_handle(b"\x01" * 31)

    def test_rejects_non_hex(self):
        with pytest.raises(ValueError, match="Invalid encrypted handle"):
            normalize_handle("0xnothex")


def test_check_network():
    check_network(11155111, 11155111)
    with pytest.raises(WrongNetwork, match="switch to chain 11155111"):
        check_network(1, 11155111)
