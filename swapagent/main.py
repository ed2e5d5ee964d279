from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api import chat, health, wallet
from .api.sessions import get_session_registry
from .config import settings
from .errors import (
    InvalidPassword,
    InvalidTransition,
    PendingSwapExists,
    SwapAgentError,
    WalletAlreadyExists,
    WalletError,
    WalletLocked,
    WalletNotFound,
)
from .logging_config import setup_logging
from .middleware import RequestLoggingMiddleware

# Most specific first
ERROR_STATUS = (
    (WalletNotFound, 404),
    (InvalidPassword, 401),
    (WalletLocked, 423),
    (WalletAlreadyExists, 409),
    (PendingSwapExists, 409),
    (InvalidTransition, 409),
    (WalletError, 400),
)


def status_for(error: SwapAgentError) -> int:
    for error_type, status in ERROR_STATUS:
        if isinstance(error, error_type):
            return status
    return 400


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    yield
    await get_session_registry().close_all()


# Create FastAPI app
app = FastAPI(
    title="Swap Agent API",
    description="Conversational token swaps on Polygon with a self-custodied wallet",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)


@app.exception_handler(SwapAgentError)
async def swap_agent_error_handler(request: Request, exc: SwapAgentError) -> JSONResponse:
    return JSONResponse(status_code=status_for(exc), content=exc.to_dict())


# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(chat.router, tags=["Chat"])
app.include_router(wallet.router, tags=["Wallet"])


@app.get("/")
async def root():
    """Root endpoint with basic info"""
    return {
        "name": "Swap Agent API",
        "version": "0.1.0",
        "chain_id": settings.chain_id,
        "docs": "/docs",
        "health": "/healthz",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "swapagent.main:app",
        host=settings.host,
        port=settings.port,
        reload=True,
        log_level=settings.log_level.lower()
    )
