from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import conf
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from routes.base import register_error_handlers, router
from utils import log

from clients.store import InMemoryStore, Store
from models.entities.couchbase.collections import collection_names

log.init(conf.get_log_level())
logger = log.get_logger(__name__)


async def _open_store(backend: str, timeout: float) -> Store:
    if backend == "memory":
        logger.warning("LEDGER_BACKEND=memory: ledger state lives in this process only")
        return InMemoryStore()

    from clients.couchbase import check_connection, ensure_collections
    from clients.couchbase.unit_of_work import CouchbaseStore

    logger.info("Verifying Couchbase connection...")
    await check_connection()
    logger.info("Couchbase connection verified.")
    created = await ensure_collections(collection_names())
    if created:
        logger.info(f"Created collections: {', '.join(created)}")
    return CouchbaseStore(default_timeout=timeout)


@asynccontextmanager
async def lifespan(app: FastAPI):
    ledger_conf = conf.get_ledger_conf()
    app.state.settlement_timeout = ledger_conf.settlement_timeout_seconds
    if not hasattr(app.state, "store"):
        app.state.store = await _open_store(ledger_conf.backend, ledger_conf.settlement_timeout_seconds)
        app.state.ledger_backend = ledger_conf.backend

    # Initialize auth client if enabled
    if conf.USE_AUTH and not hasattr(app.state, "auth_client"):
        from utils import auth

        app.state.auth_client = auth.AuthClient(conf.get_auth_config())
        try:
            await app.state.auth_client.load_keys()
        except Exception as e:
            # keys are refetched on the first token that names an unknown key
            logger.error(f"Could not load signing keys: {e}")
    elif not conf.USE_AUTH:
        logger.warning("Authentication is disabled (set USE_AUTH to enable)")

    yield


def create_app(store: Optional[Store] = None) -> FastAPI:
    app = FastAPI(
        title="Carbon Ledger API",
        version="0.1.0",
        docs_url="/docs",
        lifespan=lifespan,
        debug=conf.get_http_expose_errors(),
    )
    if store is not None:
        app.state.store = store
        app.state.ledger_backend = type(store).__name__

    app.include_router(router)
    register_error_handlers(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    return app


if not conf.validate():
    raise ValueError("Invalid configuration.")

app = create_app()

http_conf = conf.get_http_conf()

if __name__ == "__main__":
    logger.info(f"Starting API on port {http_conf.port}")
    logger.info("--- Registered Routes ---")
    for route in app.routes:
        methods_set = getattr(route, "methods", None)
        methods = ", ".join(methods_set) if methods_set else "Any"
        path = getattr(route, "path", "<unknown>")
        logger.info(f"{path} [{methods}]")
    logger.info("-------------------------")

    uvicorn.run(
        "main:app",
        host=http_conf.host,
        port=http_conf.port,
        reload=http_conf.autoreload,
        log_level="info",
        reload_dirs=[str(Path(__file__).parent), "/models", "/clients"],
        log_config=None,
    )
