import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import DuplicateKeyError, PyMongoError

from . import __version__
from .config import Config, get_config
from .database import ConnectionManager, ensure_indexes
from .errors import StorefrontError
from .routes import (
    addresses,
    auth,
    cart,
    categories,
    home,
    locations,
    orders,
    products,
    requests,
    reviews,
    settings,
    stats,
    users,
    wishlist,
)
from .settings_cache import SettingsCache

logger = logging.getLogger(__name__)

ROUTERS = (
    auth.router,
    users.router,
    products.router,
    categories.router,
    locations.governorates,
    locations.cities,
    addresses.router,
    cart.router,
    orders.router,
    reviews.router,
    wishlist.router,
    requests.router,
    home.router,
    settings.router,
    stats.router,
)


def _field_name(loc) -> str:
    parts = [str(p) for p in loc if p not in ("body", "query", "path")]
    return ".".join(parts) or "request"


async def storefront_error_handler(request: Request, exc: StorefrontError) -> JSONResponse:
    content = {"success": False, "error": exc.message}
    if exc.details:
        content["errors"] = exc.details
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=content)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [{"field": _field_name(err.get("loc", ())), "message": err.get("msg", "Invalid value")} for err in exc.errors()]
    return JSONResponse(status_code=400, content={"success": False, "error": "Validation failed", "errors": errors})


async def duplicate_key_handler(request: Request, exc: DuplicateKeyError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"success": False, "error": "Duplicate value"})


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"success": False, "error": "Server error"})


def create_app(config: Optional[Config] = None, db_manager: Optional[ConnectionManager] = None) -> FastAPI:
    config = config or get_config()
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        app.state.db_manager.close()

    app = FastAPI(title="Storefront API", version=__version__, lifespan=lifespan)
    app.state.config = config
    app.state.db_manager = db_manager or ConnectionManager(
        config.database_url, config.database_name, on_connect=ensure_indexes
    )
    app.state.settings_cache = SettingsCache(config.settings_cache_ttl, config.default_currency)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(StorefrontError, storefront_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(DuplicateKeyError, duplicate_key_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    for router in ROUTERS:
        app.include_router(router, prefix="/api")

    @app.get("/")
    def read_root():
        return {
            "message": "Storefront API running",
            "version": __version__,
            "endpoints": sorted({f"/api{r.prefix}" for r in ROUTERS}),
        }

    @app.get("/api/health")
    async def health_check(request: Request):
        manager: ConnectionManager = request.app.state.db_manager
        response = {"success": True, "status": "ok", "database": manager.state}
        try:
            db = await manager.get_database()
            response["collections"] = sorted(await db.list_collection_names())[:20]
            response["database"] = manager.state
        except PyMongoError as e:
            response["status"] = "degraded"
            response["error"] = str(e)[:100]
        return response

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=get_config().port)
