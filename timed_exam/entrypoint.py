from __future__ import annotations

import logging

from . import config
from .index import app as _app
from .middleware.rate_limit import RateLimitMiddleware
from .middleware.security_headers import SecurityHeadersMiddleware

logger = logging.getLogger(__name__)

app = _app

app.add_middleware(SecurityHeadersMiddleware)

# Added last so it runs first
if not config.DISABLE_RATE_LIMIT:
    logger.info(
        f"Rate limiting enabled: {config.RATE_LIMIT_REQUESTS} reads and "
        f"{config.RATE_LIMIT_WRITE_REQUESTS} writes per "
        f"{config.RATE_LIMIT_WINDOW_SECONDS} seconds"
    )
    app.add_middleware(
        RateLimitMiddleware,
        requests=config.RATE_LIMIT_REQUESTS,
        write_requests=config.RATE_LIMIT_WRITE_REQUESTS,
        window_seconds=config.RATE_LIMIT_WINDOW_SECONDS,
    )
else:
    logger.warning("Rate limiting is DISABLED. Only use this in trusted environments.")
