"""
Company-scoped cache service.

Provides a thin cache wrapper with:
  - Blueprint list cache per company (BLUEPRINT_LIST_CACHE_TTL, default 5 min)
  - Generic cache-aside helpers
  - Manual invalidation helpers

Uses Redis when REDIS_URL points at a server, falls back to a simple
in-memory dict for development/testing (unset or ``memory://``).
"""

import fnmatch
import json
import logging
import time

import redis
from flask import current_app, has_app_context

logger = logging.getLogger(__name__)

# ── In-memory fallback ───────────────────────────────────────────────────

_memory_store: dict = {}  # key → (value_json, expire_ts)


class _MemoryBackend:
    """Simple dict cache for dev/testing."""

    def get(self, key):
        entry = _memory_store.get(key)
        if entry is None:
            return None
        val, expires = entry
        if expires and time.time() > expires:
            _memory_store.pop(key, None)
            return None
        return val

    def setex(self, key, ttl_seconds, value):
        _memory_store[key] = (value, time.time() + ttl_seconds)

    def delete(self, *keys):
        for k in keys:
            _memory_store.pop(k, None)

    def keys(self, pattern):
        """Glob matching, same semantics as Redis KEYS."""
        return [k for k in _memory_store if fnmatch.fnmatchcase(k, pattern)]

    def flushdb(self):
        _memory_store.clear()

    def ping(self):
        return True


# ── Singleton cache backend ──────────────────────────────────────────────

_backend = None


def _redis_url():
    if has_app_context():
        return current_app.config.get("REDIS_URL")
    return None


def _get_backend():
    """Lazy-initialise Redis or fall back to in-memory."""
    global _backend
    if _backend is not None:
        return _backend

    redis_url = _redis_url()
    if redis_url and not redis_url.startswith("memory://"):
        try:
            _backend = redis.from_url(redis_url, decode_responses=True)
            _backend.ping()
            logger.info("Cache: using Redis at %s", redis_url.split("@")[-1])
        except redis.RedisError as exc:
            logger.warning("Redis unavailable (%s), falling back to memory cache", exc)
            _backend = _MemoryBackend()
    else:
        _backend = _MemoryBackend()
    return _backend


def reset_backend():
    """Drop the backend singleton so the next call re-reads REDIS_URL."""
    global _backend
    _backend = None


# ── Default TTLs ─────────────────────────────────────────────────────────

BLUEPRINT_LIST_TTL = 300   # 5 minutes
DEFAULT_TTL = 300


def _blueprint_list_ttl():
    if has_app_context():
        return int(current_app.config.get("BLUEPRINT_LIST_CACHE_TTL", BLUEPRINT_LIST_TTL))
    return BLUEPRINT_LIST_TTL


# ── Key builders ─────────────────────────────────────────────────────────

def _bp_list_key(company_id):
    return f"bp_list:{company_id}"


# ── Public API ───────────────────────────────────────────────────────────


def get_cached_blueprint_list(company_id):
    """Return the cached blueprint summary list, or None on miss."""
    raw = _get_backend().get(_bp_list_key(company_id))
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return None


def set_cached_blueprint_list(company_id, items):
    """Cache the blueprint summary list of one company."""
    _get_backend().setex(
        _bp_list_key(company_id),
        _blueprint_list_ttl(),
        json.dumps(items),
    )


def invalidate_blueprint_list(company_id):
    """Remove the cached blueprint list (after any blueprint mutation)."""
    _get_backend().delete(_bp_list_key(company_id))
    logger.debug("Cache: invalidated blueprint list company_id=%s", company_id)


def invalidate_company_cache(company_id):
    """Remove every cached entry of a company."""
    be = _get_backend()
    keys = be.keys(f"*:{company_id}")
    if keys:
        be.delete(*keys)


def get_cached(key, ttl=DEFAULT_TTL, loader=None):
    """Generic cache-aside.  If *loader* is provided, it's called on miss
    and the result is cached."""
    be = _get_backend()
    raw = be.get(key)
    if raw is not None:
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            pass
    if loader is None:
        return None
    value = loader()
    if value is not None:
        be.setex(key, ttl, json.dumps(value))
    return value


def set_cached(key, value, ttl=DEFAULT_TTL):
    """Generic set."""
    _get_backend().setex(key, ttl, json.dumps(value))


def delete_cached(key):
    """Generic delete."""
    _get_backend().delete(key)


def clear_all():
    """Flush entire cache (mainly for testing)."""
    _get_backend().flushdb()


def health_check():
    """Return cache backend status."""
    try:
        be = _get_backend()
        be.ping()
        backend_type = "redis" if not isinstance(be, _MemoryBackend) else "memory"
        return {"status": "ok", "backend": backend_type}
    except redis.RedisError as exc:
        return {"status": "error", "detail": str(exc)}
