import asyncio
import time
from collections.abc import Iterable

import structlog
from eth_utils import to_checksum_address

from tokenspectrum.config import settings
from tokenspectrum.errors import AuthorizationDenied, SpectrumError, WalletUnavailable
from tokenspectrum.models.grant import AuthorizationGrant, HandleContractPair
from tokenspectrum.services.crypto_utils import generate_ephemeral_keypair
from tokenspectrum.services.wallet_service import Wallet

logger = structlog.get_logger()

EIP712_DOMAIN_NAME = "Decryption"
EIP712_DOMAIN_VERSION = "1"
EXTRA_DATA = b"\x00"

USER_DECRYPT_TYPES = {
    "UserDecryptRequestVerification": [
        {"name": "publicKey", "type": "bytes"},
        {"name": "contractAddresses", "type": "address[]"},
        {"name": "startTimestamp", "type": "uint256"},
        {"name": "durationDays", "type": "uint256"},
        {"name": "extraData", "type": "bytes"},
    ]
}


def create_eip712(
    public_key: bytes,
    contract_addresses: list[str],
    start_timestamp: int,
    duration_days: int,
) -> dict:
    """Build the typed-data document the relayer verifies for a user decryption."""
    return {
        "domain": {
            "name": EIP712_DOMAIN_NAME,
            "version": EIP712_DOMAIN_VERSION,
            "chainId": settings.gateway_chain_id,
            "verifyingContract": to_checksum_address(settings.decryption_verifying_contract),
        },
        "types": USER_DECRYPT_TYPES,
        "primaryType": "UserDecryptRequestVerification",
        "message": {
            "publicKey": public_key,
            "contractAddresses": contract_addresses,
            "startTimestamp": start_timestamp,
            "durationDays": duration_days,
            "extraData": EXTRA_DATA,
        },
    }


async def build_grant(
    wallet: Wallet | None,
    contract_addresses: Iterable[str],
    handle_contract_pairs: Iterable[HandleContractPair],
    *,
    now: int | None = None,
    duration_days: int | None = None,
) -> AuthorizationGrant:
    """
    Generate an ephemeral keypair and have the owner wallet sign a grant over it.

    The owner's key authorizes the request; the ephemeral key only seals the
    response. Rejected or timed-out signing raises AuthorizationDenied.
    """
    if wallet is None:
        raise WalletUnavailable("Connect a wallet first.")

    allowlist = tuple(dict.fromkeys(to_checksum_address(a) for a in contract_addresses))
    pairs = frozenset(handle_contract_pairs)
    if not allowlist:
        raise ValueError("At least one contract address is required")
    if not pairs:
        raise ValueError("At least one handle/contract pair is required")
    outside = sorted({p.contract_address for p in pairs} - set(allowlist))
    if outside:
        raise ValueError(f"Pairs reference contracts outside the allowlist: {', '.join(outside)}")

    private_key, public_key = generate_ephemeral_keypair()
    start_timestamp = int(time.time()) if now is None else int(now)
    duration = settings.grant_duration_days if duration_days is None else duration_days

    eip712 = create_eip712(public_key, list(allowlist), start_timestamp, duration)
    owner_address = await wallet.get_address()

    try:
        signature = await asyncio.wait_for(
            wallet.sign_typed_data(eip712["domain"], eip712["types"], eip712["message"]),
            timeout=settings.signature_timeout_seconds,
        )
    except asyncio.TimeoutError:
        raise AuthorizationDenied("Signature request timed out")
    except SpectrumError:
        raise
    except Exception as e:
        logger.info("grant_signature_rejected", error=str(e))
        raise AuthorizationDenied(f"Signature request rejected: {e}")

    logger.info(
        "grant_built",
        owner=owner_address,
        contracts=list(allowlist),
        handles=len(pairs),
        start_timestamp=start_timestamp,
        duration_days=duration,
    )

    return AuthorizationGrant(
        public_key=public_key,
        owner_address=owner_address,
        contract_addresses=allowlist,
        handle_contract_pairs=pairs,
        start_timestamp=start_timestamp,
        duration_days=duration,
        signature=signature,
        _private_key=private_key,
    )
