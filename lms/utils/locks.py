"""Advisory locks on top of the Django cache.

``cache.add`` only stores the key when it is absent, which is atomic on the
memcached, redis and database backends. With the default local-memory cache
the lock only covers a single process.
"""

import logging
import uuid
from contextlib import contextmanager

from django.core.cache import cache

logger = logging.getLogger(__name__)


@contextmanager
def cache_lock(key, timeout):
    """Yield ``True`` if the lock was taken, ``False`` if someone else holds it."""
    token = uuid.uuid4().hex
    acquired = cache.add(key, token, timeout)
    if not acquired:
        logger.debug("Lock %s is held elsewhere", key)
    try:
        yield acquired
    finally:
        # Only release our own token; an expired lock may have been re-taken.
        if acquired and cache.get(key) == token:
            cache.delete(key)
