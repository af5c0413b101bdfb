import structlog
from fastapi import APIRouter, Depends, HTTPException, Path, Request

from tokenspectrum.config import settings
from tokenspectrum.middleware.rate_limit import limiter
from tokenspectrum.schemas.asset import ActionResponse, DecryptRequest, PortfolioResponse
from tokenspectrum.services.lifecycle_service import ActionOutcome, AssetLifecycleController
from tokenspectrum.session import get_controller

router = APIRouter()
logger = structlog.get_logger()


def outcome_response(outcome: ActionOutcome) -> ActionResponse:
    """Translate a controller outcome, raising HTTPException for failures."""
    if not outcome.ok:
        raise HTTPException(
            status_code=outcome.error.http_status,
            detail={"status": outcome.status, "error": outcome.error.kind},
        )
    portfolio = outcome.portfolio
    return ActionResponse(
        ok=True,
        status=outcome.status,
        portfolio=PortfolioResponse.from_portfolio(portfolio) if portfolio else None,
    )


@router.get("/portfolio", response_model=PortfolioResponse)
@limiter.limit(settings.rate_limit_reads)
async def get_portfolio(
    request: Request,
    controller: AssetLifecycleController = Depends(get_controller),
):
    """
    List the wallet's NFTs and encrypted TEST balance.

    Always reads the chain; the result replaces anything shown before.
    """
    response = outcome_response(await controller.refresh())
    return response.portfolio


@router.post("/assets/mint", response_model=ActionResponse)
@limiter.limit(settings.rate_limit_writes)
async def mint_asset(
    request: Request,
    controller: AssetLifecycleController = Depends(get_controller),
):
    """Mint a new NFT carrying an encrypted random test value (1-100)."""
    return outcome_response(await controller.mint())


@router.post("/assets/{token_id}/claim", response_model=ActionResponse)
@limiter.limit(settings.rate_limit_writes)
async def claim_asset(
    request: Request,
    token_id: int = Path(..., ge=0),
    controller: AssetLifecycleController = Depends(get_controller),
):
    """
    Claim TEST tokens equal to the NFT's hidden test value.

    The contract rejects claims by non-owners and second claims; those come
    back as 409 with the revert reason.
    """
    return outcome_response(await controller.claim(token_id))


@router.post("/assets/decrypt", response_model=ActionResponse)
@limiter.limit(settings.rate_limit_decrypts)
async def decrypt_assets(
    request: Request,
    decrypt_data: DecryptRequest,
    controller: AssetLifecycleController = Depends(get_controller),
):
    """Decrypt hidden test values (and optionally the balance) under a single fresh grant."""
    outcome = await controller.decrypt(
        decrypt_data.token_ids, include_balance=decrypt_data.include_balance
    )
    return outcome_response(outcome)


@router.post("/balance/decrypt", response_model=ActionResponse)
@limiter.limit(settings.rate_limit_decrypts)
async def decrypt_balance(
    request: Request,
    controller: AssetLifecycleController = Depends(get_controller),
):
    """Decrypt the confidential TEST balance."""
    return outcome_response(await controller.decrypt_balance())
