"""
Asset lifecycle controller.

Drives Unminted -> Minted -> Claimed transitions, refreshes the portfolio after
every confirmed transaction and runs user decryptions. Every public action
catches SpectrumError at its boundary and reports a short status string; the
portfolio is only ever replaced as a whole.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass

import structlog

from tokenspectrum.errors import (
    AccessDenied,
    AuthorizationDenied,
    ConfigurationError,
    InvalidRequest,
    SpectrumError,
    WalletUnavailable,
    WrongNetwork,
)
from tokenspectrum.models.asset import ZERO_HANDLE, Portfolio
from tokenspectrum.models.grant import HandleContractPair
from tokenspectrum.services.chain_service import ChainReader, check_network
from tokenspectrum.services.grant_service import build_grant
from tokenspectrum.services.relayer_service import RelayerClient
from tokenspectrum.services.wallet_service import Wallet

logger = structlog.get_logger()

# Failures whose message is already the whole user-facing status
SETUP_ERRORS = (ConfigurationError, InvalidRequest, WalletUnavailable, WrongNetwork)


@dataclass(frozen=True)
class ActionOutcome:
    ok: bool
    status: str
    portfolio: Portfolio | None = None
    error: SpectrumError | None = None


def failure_status(label: str, error: SpectrumError) -> str:
    if isinstance(error, SETUP_ERRORS):
        return error.message
    if isinstance(error, AccessDenied):
        return f"{label} failed (check ACL and contract address): {error.message}"
    if isinstance(error, AuthorizationDenied):
        return f"{label} failed (authorization rejected or expired, retry to sign a new grant): {error.message}"
    return f"{label} failed: {error.message}"


class AssetLifecycleController:
    """One per user session; holds that session's wallet and latest portfolio."""

    def __init__(
        self,
        reader: ChainReader | None,
        wallet: Wallet | None,
        relayer: RelayerClient,
        *,
        expected_chain_id: int,
    ):
        self._reader = reader
        self._wallet = wallet
        self._relayer = relayer
        self._expected_chain_id = expected_chain_id
        self._portfolio: Portfolio | None = None

    @property
    def portfolio(self) -> Portfolio | None:
        return self._portfolio

    async def _require_ready(self) -> tuple[ChainReader, Wallet]:
        if self._reader is None:
            raise ConfigurationError("Contracts are not configured yet.")
        if self._wallet is None:
            raise WalletUnavailable("Connect a wallet first.")
        check_network(await self._wallet.chain_id(), self._expected_chain_id)
        return self._reader, self._wallet

    async def _reload(self) -> Portfolio:
        reader, wallet = await self._require_ready()
        previous = self._portfolio
        fresh = await reader.refresh(await wallet.get_address())

        if previous is not None and previous.owner == fresh.owner:
            for record in fresh.rows:
                before = previous.row(record.token_id)
                if before is not None and before.claimed and not record.claimed:
                    logger.warning("claimed_flag_regressed", token_id=record.token_id)

        self._portfolio = fresh
        return fresh

    async def _run(
        self,
        action: str,
        label: str,
        operation: Callable[[], Awaitable[str]],
    ) -> ActionOutcome:
        try:
            status = await operation()
        except SpectrumError as e:
            logger.info("action_failed", action=action, error_kind=e.kind, error=e.message)
            return ActionOutcome(
                ok=False,
                status=failure_status(label, e),
                portfolio=self._portfolio,
                error=e,
            )
        logger.info("action_completed", action=action)
        return ActionOutcome(ok=True, status=status, portfolio=self._portfolio)

    async def _after_transaction(self, done: str) -> str:
        # Handles and claim flags are not stable across mutations
        self._portfolio = None
        try:
            await self._reload()
        except SpectrumError as e:
            logger.warning("refresh_after_transaction_failed", error_kind=e.kind)
            return f"{done} Refreshing on-chain data failed: {e.message}"
        return done

    async def network_status(self) -> dict:
        """Report connected account, chain and contract configuration without failing."""
        status = {
            "expected_chain_id": self._expected_chain_id,
            "chain_id": None,
            "wrong_network": False,
            "account": None,
            "contracts_configured": self._reader is not None,
            "nft_address": self._reader.nft_address if self._reader else None,
            "token_address": self._reader.token_address if self._reader else None,
            "message": None,
        }
        if self._wallet is None:
            status["message"] = "Connect a wallet first."
            return status

        status["account"] = await self._wallet.get_address()
        try:
            chain_id = await self._wallet.chain_id()
        except SpectrumError as e:
            status["message"] = e.message
            return status

        status["chain_id"] = chain_id
        try:
            check_network(chain_id, self._expected_chain_id)
        except WrongNetwork as e:
            status["wrong_network"] = True
            status["message"] = e.message
        else:
            if self._reader is None:
                status["message"] = "Contracts are not configured yet."
        return status

    async def refresh(self) -> ActionOutcome:
        async def operation() -> str:
            portfolio = await self._reload()
            return f"Loaded {len(portfolio.rows)} NFT(s)."

        return await self._run("refresh", "Loading on-chain data", operation)

    async def mint(self) -> ActionOutcome:
        async def operation() -> str:
            reader, wallet = await self._require_ready()
            await wallet.send_transaction(reader.nft.functions.mint())
            return await self._after_transaction("Minted.")

        return await self._run("mint", "Mint", operation)

    async def claim(self, token_id: int) -> ActionOutcome:
        async def operation() -> str:
            reader, wallet = await self._require_ready()
            # Ownership and double claims are enforced by the contract
            await wallet.send_transaction(reader.nft.functions.claim(token_id))
            return await self._after_transaction(f"Claimed TEST for tokenId {token_id}.")

        return await self._run("claim", "Claim", operation)

    async def decrypt(self, token_ids: Iterable[int] = (), include_balance: bool = False) -> ActionOutcome:
        """Decrypt the hidden attribute of `token_ids` and optionally the TEST balance under one grant."""
        requested = list(dict.fromkeys(int(token_id) for token_id in token_ids))

        async def operation() -> str:
            reader, wallet = await self._require_ready()
            portfolio = self._portfolio or await self._reload()

            pairs: list[HandleContractPair] = []
            for token_id in requested:
                record = portfolio.row(token_id)
                if record is None:
                    raise AccessDenied(f"Token {token_id} is not owned by {portfolio.owner}")
                pairs.append(HandleContractPair.of(record.encrypted_test, reader.nft_address))

            values: dict[str, int] = {}
            if include_balance and portfolio.balance is not None:
                if portfolio.balance.is_uninitialized:
                    # Never-credited balance: the zero handle has no ciphertext behind it
                    values[ZERO_HANDLE] = 0
                else:
                    pairs.append(
                        HandleContractPair.of(portfolio.balance.encrypted_handle, reader.token_address)
                    )

            if not pairs and not values:
                raise InvalidRequest("Nothing to decrypt: pass token ids and/or the balance.")

            failures: dict[str, SpectrumError] = {}
            if pairs:
                grant = await build_grant(
                    wallet,
                    [pair.contract_address for pair in pairs],
                    pairs,
                )
                result = await self._relayer.decrypt(grant, pairs)
                values.update(result.values)
                failures = result.errors

            self._portfolio = portfolio.with_decrypted(values)

            if failures and not values:
                raise next(iter(failures.values()))
            if failures:
                return f"Decrypted {len(values)} of {len(values) + len(failures)} value(s)."
            return "Decrypted."

        return await self._run("decrypt", "Decryption", operation)

    async def decrypt_attribute(self, token_id: int) -> ActionOutcome:
        return await self.decrypt([token_id])

    async def decrypt_balance(self) -> ActionOutcome:
        return await self.decrypt(include_balance=True)
