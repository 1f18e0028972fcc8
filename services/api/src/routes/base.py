from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse

from clients.store import StoreError, TransactionTimeoutError
from models.errors import MarketplaceError
from utils import log

from .holdings import router as holdings_router
from .listing_events import router as listing_events_router
from .listings import router as listings_router
from .projects import router as projects_router
from .retirements import router as retirements_router
from .trading import router as trading_router
from .transactions import router as transactions_router
from .webhooks import router as webhooks_router

logger = log.get_logger(__name__)

router = APIRouter(prefix="/api/v1")
router.include_router(trading_router)
router.include_router(listings_router)
router.include_router(listing_events_router)
router.include_router(projects_router)
router.include_router(holdings_router)
router.include_router(transactions_router)
router.include_router(retirements_router)
router.include_router(webhooks_router)


@router.post("/seed", tags=["dev"])
async def route_seed(request: Request):
    """Populate the store with registry seed data (dev only)."""
    from seed import run_seed

    counts = await run_seed(request.app.state.store)
    return {"status": "ok", "seeded": counts}


@router.get("/healthz", tags=["health"])
async def route_healthz(request: Request):
    return {"status": "ok", "backend": request.app.state.ledger_backend}


async def _marketplace_error_handler(request: Request, exc: MarketplaceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


async def _store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    if isinstance(exc, TransactionTimeoutError):
        logger.warning(f"{request.method} {request.url.path} timed out: {exc}")
        return JSONResponse(status_code=504, content={"detail": "Settlement timed out, nothing was applied"})
    logger.error(f"{request.method} {request.url.path} storage error: {exc}")
    return JSONResponse(status_code=503, content={"detail": "Storage unavailable"})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(MarketplaceError, _marketplace_error_handler)
    app.add_exception_handler(StoreError, _store_error_handler)
