"""
Reconciliation events published to Redis Streams for dashboards.

Optional: when REDIS_URL is empty or Redis is unreachable, publishing is
a no-op and reconciliation proceeds unaffected.
"""
import json as _json
import logging
import time
from datetime import datetime, timezone
from typing import Optional

import redis

from engula_operator.config import settings

logger = logging.getLogger("events")

_redis_client: Optional[redis.Redis] = None
_redis_retry_at = 0.0

# Seconds to wait before trying an unreachable Redis again
REDIS_RETRY_SECONDS = 60.0


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _get_redis() -> Optional[redis.Redis]:
    """Lazy-init Redis client. Returns None if unavailable."""
    global _redis_client, _redis_retry_at
    if _redis_client is not None:
        return _redis_client
    if not settings.REDIS_URL or time.monotonic() < _redis_retry_at:
        return None
    try:
        client = redis.Redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        client.ping()
    except Exception as e:
        logger.warning(f"Redis unavailable (non-fatal), retrying in {REDIS_RETRY_SECONDS:.0f}s: {e}")
        _redis_retry_at = time.monotonic() + REDIS_RETRY_SECONDS
        return None
    logger.info(f"Redis connected: {settings.REDIS_URL}")
    _redis_client = client
    return _redis_client


def publish_event(kind: str, namespace: str, name: str, event_type: str, message: str) -> None:
    """Publish an event to the per-resource stream and the global channel."""
    r = _get_redis()
    if not r:
        return
    entry = {
        "kind": kind,
        "namespace": namespace,
        "name": name,
        "type": event_type,
        "message": message,
        "timestamp": _now(),
    }
    try:
        r.xadd(f"engula:events:{kind.lower()}:{namespace}:{name}", entry, maxlen=100)
        r.publish("engula:events", _json.dumps(entry))
    except Exception as e:
        logger.debug(f"Redis publish failed (non-fatal): {e}")
