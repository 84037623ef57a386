"""
api/limiter.py -- Shared slowapi rate limiter instance.

Imported by api/main.py (to mount as middleware) and by the auth routes (to
apply per-route limits with @limiter.limit()). A single shared instance means
all routes share the same in-memory counter store.

@limiter.limit() goes directly above the endpoint function, below
@router.post(), so the registered endpoint is the wrapped one and checks its
own limit. The middleware cannot find endpoints inside included routers on
current FastAPI releases.

Limits are keyed by client IP. Behind a reverse proxy, run uvicorn with
--proxy-headers so request.client reflects the real address.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")
