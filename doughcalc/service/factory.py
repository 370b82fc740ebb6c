"""Service factory for the dough calculator.

Builds the RecipeService and its collaborators (caches, completion
gateway, scheduler, rate limiter) from configuration. The composition root
(app.py) owns their lifecycle.
"""

from typing import Optional

from doughcalc.cache.layered import LayeredCache
from doughcalc.cache.memory import MemoryCache
from doughcalc.cache.upstash import UpstashCache
from doughcalc.engine.scheduler import FermentationScheduler
from doughcalc.gateway.completion import CompletionGateway
from doughcalc.service.rate_limiter import RateLimiter
from doughcalc.service.recipe_service import RecipeService
from doughcalc.utils.config import Config
from doughcalc.utils.config import config as default_config
from doughcalc.utils.logger import logger


def create_cache(config: Config) -> LayeredCache:
    memory = MemoryCache(
        prefix=config.CACHE_PREFIX,
        default_ttl=config.CACHE_TTL_SECONDS,
        max_entries=config.MEMORY_CACHE_MAX_ENTRIES,
    )
    persistent: Optional[UpstashCache] = None
    if config.upstash_enabled:
        persistent = UpstashCache(
            url=config.UPSTASH_REDIS_REST_URL,
            token=config.UPSTASH_REDIS_REST_TOKEN,
            prefix=config.CACHE_PREFIX,
            default_ttl=config.CACHE_TTL_SECONDS,
        )
    return LayeredCache(memory, persistent, ttl=config.CACHE_TTL_SECONDS)


def create_recipe_service(config: Optional[Config] = None) -> RecipeService:
    """Initialize the recipe service from configuration.

    Args:
        config: Configuration to use; the module-level config when omitted.

    Returns:
        RecipeService: Ready to serve requests.
    """
    config = config or default_config

    logger.info("Step 1/4: Configuring analysis cache...")
    cache = create_cache(config)
    if cache.persistent_enabled:
        logger.info("✓ Two-tier cache configured (memory + Upstash Redis)")
    else:
        logger.info("✓ Memory cache configured (Upstash Redis disabled: URL/token not set)")

    logger.info("Step 2/4: Configuring completion gateway...")
    gateway = CompletionGateway(
        api_key=config.GEMINI_API_KEY,
        model=config.GEMINI_MODEL,
        temperature=config.TEMPERATURE,
        max_output_tokens=config.MAX_OUTPUT_TOKENS,
        max_retries=config.MAX_RETRIES,
        initial_delay=config.DELAY_BETWEEN_RETRIES,
        attempt_timeout=config.UPSTREAM_TIMEOUT_SECONDS,
    )
    if config.GEMINI_API_KEY:
        logger.info(f"✓ Completion gateway configured with {config.GEMINI_MODEL}")
    else:
        logger.warning("GEMINI_API_KEY not set: only cached analyses can be served")

    logger.info("Step 3/4: Configuring fermentation scheduler...")
    scheduler = FermentationScheduler(
        cold_threshold_hours=config.COLD_PHASE_THRESHOLD_HOURS,
        custom_room_phase_hours=config.CUSTOM_ROOM_PHASE_HOURS,
        min_custom_hours=config.MIN_CUSTOM_HOURS,
    )
    logger.info(
        f"✓ Scheduler configured (cold phase above {config.COLD_PHASE_THRESHOLD_HOURS}h, "
        f"minimum {config.MIN_CUSTOM_HOURS}h)"
    )

    logger.info("Step 4/4: Assembling recipe service...")
    service = RecipeService(
        cache=cache,
        gateway=gateway,
        scheduler=scheduler,
        cache_ttl=config.CACHE_TTL_SECONDS,
        request_timeout=config.REQUEST_TIMEOUT_SECONDS,
        retry_after=config.RETRY_AFTER_SECONDS,
    )
    logger.info(f"✓ Recipe service ready (deadline {config.REQUEST_TIMEOUT_SECONDS}s)")
    return service


def create_rate_limiter(config: Optional[Config] = None) -> Optional[RateLimiter]:
    config = config or default_config
    if not config.RATE_LIMIT_ENABLED:
        logger.info("Rate limiting disabled")
        return None
    return RateLimiter(per_minute=config.RATE_LIMIT_PER_MINUTE, per_day=config.RATE_LIMIT_PER_DAY)
