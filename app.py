"""Dough Calculator Service - FastAPI application.

Single entry point for the dough calculation API:
- Builds the recipe service (caches, completion gateway, scheduler) via the factory
- Owns their lifecycle: tier-1 cache sweeper on startup, sessions closed on shutdown
- Serves POST /api/recipe-adjust and GET /health

Run with: python app.py
"""

from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from doughcalc.api.routes import router
from doughcalc.service.factory import create_rate_limiter, create_recipe_service
from doughcalc.service.rate_limiter import RateLimiter
from doughcalc.service.recipe_service import RecipeService
from doughcalc.utils.config import Config
from doughcalc.utils.config import config as default_config
from doughcalc.utils.logger import logger


def create_app(
    config: Optional[Config] = None,
    service: Optional[RecipeService] = None,
    rate_limiter: Optional[RateLimiter] = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        config: Configuration; the module-level config when omitted.
        service: Pre-built service (tests inject one with mocked collaborators).
        rate_limiter: Pre-built limiter; built from config when omitted and
            RATE_LIMIT_ENABLED is set.
    """
    config = config or default_config
    service = service or create_recipe_service(config)
    if rate_limiter is None:
        rate_limiter = create_rate_limiter(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        service.cache.memory.start_sweeper(config.MEMORY_CACHE_SWEEP_SECONDS)
        logger.info("Dough calculator ready")
        yield
        logger.info("Shutting down: waiting for detached analyses, then closing cache connections")
        await service.drain()
        await service.cache.close()

    app = FastAPI(
        title="Dough Calculator API",
        description="Baker's percentage weights, fermentation schedules and dough analysis",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["POST", "GET", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Cache", "Retry-After", "X-Request-ID"],
    )
    app.state.recipe_service = service
    app.state.rate_limiter = rate_limiter
    app.state.max_request_bytes = config.MAX_REQUEST_BYTES
    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    logger.info(f"Starting Dough Calculator Service on port {default_config.PORT}")
    logger.info(f"API docs available at: http://localhost:{default_config.PORT}/docs")
    uvicorn.run(app, host="0.0.0.0", port=default_config.PORT)
