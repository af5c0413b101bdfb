from fastapi import APIRouter, Depends, Request

from tokenspectrum.config import settings
from tokenspectrum.middleware.rate_limit import limiter
from tokenspectrum.schemas.network import NetworkStatusResponse
from tokenspectrum.services.lifecycle_service import AssetLifecycleController
from tokenspectrum.session import get_controller

router = APIRouter()


@router.get("/network", response_model=NetworkStatusResponse)
@limiter.limit(settings.rate_limit_reads)
async def get_network_status(
    request: Request,
    controller: AssetLifecycleController = Depends(get_controller),
):
    """
    Report network, account and contract configuration.

    Never fails for a wrong network or missing wallet; those are reported in
    the body so a client can prompt the user.
    """
    status = await controller.network_status()
    return NetworkStatusResponse(relayer_url=settings.relayer_url, **status)
