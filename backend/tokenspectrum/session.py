from collections.abc import AsyncIterator

import structlog

from tokenspectrum.config import settings
from tokenspectrum.errors import ConfigurationError, WalletUnavailable
from tokenspectrum.services.chain_service import ChainReader, connect
from tokenspectrum.services.lifecycle_service import AssetLifecycleController
from tokenspectrum.services.relayer_service import RelayerClient
from tokenspectrum.services.wallet_service import LocalWallet

logger = structlog.get_logger()


async def get_controller() -> AsyncIterator[AssetLifecycleController]:
    """
    Dependency for FastAPI endpoints to get a lifecycle controller.

    Each request gets its own controller, wallet and RPC connection. Missing
    contracts or wallet are not errors here; the controller reports them as
    action statuses.
    """
    w3 = connect(settings)

    try:
        reader = ChainReader.from_settings(settings, w3)
    except ConfigurationError as e:
        logger.debug("contracts_not_configured", reason=e.message)
        reader = None

    try:
        wallet = LocalWallet.from_settings(settings, w3)
    except WalletUnavailable:
        wallet = None

    controller = AssetLifecycleController(
        reader,
        wallet,
        RelayerClient(settings),
        expected_chain_id=settings.chain_id,
    )
    try:
        yield controller
    finally:
        await w3.provider.disconnect()
