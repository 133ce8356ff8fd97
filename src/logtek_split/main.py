# src/logtek_split/main.py
"""Main entry point for the Logtek Split App Proxy service."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from logtek_split.api import proxy_router, system_router
from logtek_split.api.dependencies import ProxySignatureError
from logtek_split.core.settings import settings
from logtek_split.schemas.prepare import INTERNAL_ERROR, INVALID_SIGNATURE_ERROR
from logtek_split.services.shopify import ShopifyError, get_shopify_client

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Logtek Split",
    description="Shopify App Proxy relay splitting carts between vendor accounts and checkout",
    version=settings.app_version,
    debug=settings.debug,
)

app.include_router(system_router)
app.include_router(proxy_router)


@app.exception_handler(ProxySignatureError)
async def proxy_signature_error_handler(request: Request, exc: ProxySignatureError) -> JSONResponse:
    logger.info("Rejected App Proxy request to %s", exc.path)
    return JSONResponse(
        status_code=status.HTTP_403_FORBIDDEN,
        content={"error": INVALID_SIGNATURE_ERROR},
    )


@app.exception_handler(ShopifyError)
async def shopify_error_handler(request: Request, exc: ShopifyError) -> JSONResponse:
    logger.error("Shopify call failed during %s: %s", request.url.path, exc, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": INTERNAL_ERROR},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error during %s", request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": INTERNAL_ERROR},
    )


@app.on_event("startup")
async def on_startup() -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    missing = settings.missing_configuration()
    if missing:
        logger.error("Missing configuration: %s", ", ".join(missing))
    logger.info("%s ready (proxy prefix %s)", settings.app_name, settings.app_proxy_prefix)


@app.on_event("shutdown")
async def on_shutdown() -> None:
    await get_shopify_client().close()
