from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from tokenspectrum import __version__
from tokenspectrum.config import settings
from tokenspectrum.logging_config import setup_logging
from tokenspectrum.middleware.logging import CORRELATION_HEADER, LoggingMiddleware
from tokenspectrum.middleware.rate_limit import limiter
from tokenspectrum.routers import assets, network

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging once per process."""
    setup_logging()
    logger.info(
        "service_started",
        chain_id=settings.chain_id,
        relayer_url=settings.relayer_url,
        wallet_configured=settings.wallet_private_key is not None,
    )
    yield


app = FastAPI(
    title="TokenSpectrum",
    description="Confidential NFT attributes and TEST balances with user decryption",
    version=__version__,
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Request logging / correlation IDs
app.add_middleware(LoggingMiddleware)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    # Runs outside LoggingMiddleware, so the header is added here
    correlation_id = getattr(request.state, "correlation_id", None)
    headers = {CORRELATION_HEADER: correlation_id} if correlation_id else None
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
        headers=headers,
    )


# Routers
app.include_router(network.router, prefix="/api/v1", tags=["network"])
app.include_router(assets.router, prefix="/api/v1", tags=["assets"])


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
