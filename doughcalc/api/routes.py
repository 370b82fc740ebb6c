"""HTTP routes: the calculation endpoint and a health check.

The router reads its collaborators from ``app.state`` (set by the
composition root), so tests can mount it with stub services.

Status mapping:
    200  analysis + recipe (``X-Cache`` tells where the analysis came from)
    400  invalid JSON or request fields, unknown style, custom schedule too short
    413  body larger than MAX_REQUEST_BYTES
    429  rate limited (``Retry-After``)
    500  missing API key on a cache miss, or an unexpected error
    503  completion failed or the deadline elapsed (``Retry-After``)
"""

import json
import uuid
from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from doughcalc.models.models import RecipeRequest
from doughcalc.service.rate_limiter import RateLimiter
from doughcalc.service.recipe_service import RecipeService
from doughcalc.utils.errors import (
    DoughServiceError,
    PayloadTooLarge,
    RateLimitError,
    UpstreamError,
    ValidationError,
)
from doughcalc.utils.logger import logger, request_id_var


router = APIRouter()

SUCCESS_CACHE_CONTROL = "public, max-age=3600"
BYPASS_QUERY_PARAMS = ("nocache", "t")


def client_id(request: Request) -> str:
    """First X-Forwarded-For hop, else the peer address."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client is not None and request.client.host:
        return request.client.host
    return "anonymous"


def _validation_message(error: PydanticValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    return f"Invalid request: {location}: {first.get('msg')}" if location else f"Invalid request: {first.get('msg')}"


def error_response(error: DoughServiceError, request_id: str) -> JSONResponse:
    headers = {"X-Request-ID": request_id}
    retry_after: Optional[int] = None
    if isinstance(error, (RateLimitError, UpstreamError)):
        retry_after = error.retry_after
    if retry_after is not None:
        headers["Retry-After"] = str(retry_after)
    return JSONResponse(status_code=error.status_code, content=error.to_payload(), headers=headers)


async def parse_request(request: Request, max_bytes: int) -> RecipeRequest:
    """Read, size-check and validate the JSON body.

    Raises:
        PayloadTooLarge: Declared or actual body size above ``max_bytes``.
        ValidationError: Body is not JSON or fails the request schema.
    """
    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > max_bytes:
        raise PayloadTooLarge(f"Request body too large (limit {max_bytes} bytes)")
    body = await request.body()
    if len(body) > max_bytes:
        raise PayloadTooLarge(f"Request body too large (limit {max_bytes} bytes)")

    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ValidationError("Invalid JSON body") from e
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    if not payload.get("style"):
        raise ValidationError("Missing pizza style")

    try:
        return RecipeRequest.model_validate(payload)
    except PydanticValidationError as e:
        raise ValidationError(_validation_message(e)) from e


@router.post("/api/recipe-adjust")
async def recipe_adjust(request: Request) -> JSONResponse:
    """Calculate weights, schedule and analysis for one dough request."""
    request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:8]
    token = request_id_var.set(request_id)
    try:
        service: RecipeService = request.app.state.recipe_service
        limiter: Optional[RateLimiter] = getattr(request.app.state, "rate_limiter", None)
        max_bytes: int = request.app.state.max_request_bytes

        if limiter is not None:
            limiter.check(client_id(request))

        recipe_request = await parse_request(request, max_bytes)
        use_cache = not any(param in request.query_params for param in BYPASS_QUERY_PARAMS)
        logger.info(f"Recipe request: style={recipe_request.style}, cache={'on' if use_cache else 'bypass'}")

        outcome = await service.calculate(recipe_request, use_cache=use_cache)
        logger.info(f"✓ Recipe calculated (X-Cache: {outcome.cache_status.value})")
        return JSONResponse(
            content=outcome.body,
            headers={
                "Cache-Control": SUCCESS_CACHE_CONTROL,
                "X-Cache": outcome.cache_status.value,
                "X-Request-ID": request_id,
            },
        )
    except DoughServiceError as e:
        log = logger.error if e.status_code >= 500 else logger.warning
        log(f"Recipe request failed with {e.status_code}: {type(e).__name__}: {e.message}")
        return error_response(e, request_id)
    except Exception as e:
        logger.exception(f"Unexpected error handling recipe request: {e}")
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error"},
            headers={"X-Request-ID": request_id},
        )
    finally:
        request_id_var.reset(token)


@router.get("/health")
async def health(request: Request) -> dict:
    service: RecipeService = request.app.state.recipe_service
    return {"status": "ok", "persistentCache": service.cache.persistent_enabled}
