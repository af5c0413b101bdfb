from tokenspectrum.schemas.asset import (
    ActionResponse,
    AssetRow,
    BalanceView,
    DecryptRequest,
    PortfolioResponse,
)
from tokenspectrum.schemas.network import NetworkStatusResponse

__all__ = [
    "ActionResponse",
    "AssetRow",
    "BalanceView",
    "DecryptRequest",
    "NetworkStatusResponse",
    "PortfolioResponse",
]
