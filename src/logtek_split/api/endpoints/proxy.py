"""App Proxy endpoints reached through ``/apps/<slug>/prepare``."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from logtek_split.api.dependencies import PrepareServiceDep, SignedRequestDep
from logtek_split.schemas.prepare import (
    EMPTY_CART_ERROR,
    ErrorResponse,
    PrepareRequest,
    PrepareResponse,
)

router = APIRouter(tags=["proxy"])


async def _read_cart(request: Request) -> PrepareRequest:
    """Parse the posted cart; only called once the signature is verified."""
    try:
        body: Any = await request.json()
    except ValueError as exc:
        raise RequestValidationError(
            [{"type": "json_invalid", "loc": ("body",), "msg": "JSON decode error"}]
        ) from exc
    try:
        return PrepareRequest.model_validate(body)
    except ValidationError as exc:
        raise RequestValidationError(exc.errors(include_url=False, include_context=False)) from exc


@router.get("/prepare", response_model=ErrorResponse)
async def prepare_without_cart(signed: SignedRequestDep) -> ErrorResponse:
    """Signed GET carries no cart, so it always reports an empty cart."""
    return ErrorResponse(error=EMPTY_CART_ERROR)


@router.post("/prepare", response_model=PrepareResponse | ErrorResponse)
async def prepare_cart(
    request: Request,
    signed: SignedRequestDep,
    service: PrepareServiceDep,
) -> PrepareResponse | ErrorResponse:
    """Split the posted cart into vendor-account orders and a pay-now checkout.

    The body is read after the signature dependency has run, so unsigned
    requests are rejected before any payload parsing.

    Args:
        request: Incoming request carrying the JSON cart
        signed: Verified App Proxy request
        service: Prepare workflow

    Returns:
        The split summary, or the empty-cart sentinel when no items are posted
    """
    payload = await _read_cart(request)
    if not payload.items:
        return ErrorResponse(error=EMPTY_CART_ERROR)
    return await service.prepare(payload)
