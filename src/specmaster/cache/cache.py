"""Disk-based caching of parse results.

Uses :mod:`diskcache` to persist :class:`~specmaster.models.StreamResult`
objects on the filesystem with a configurable time-to-live (TTL), so that
repeated ``inspect`` commands against the same document skip the streaming
parse.

Cache keys are SHA-256 hashes of the source identity plus the JSON dump of
the :class:`~specmaster.models.StreamOptions` that produced the result. A
source identity is either the document text itself (:meth:`ParseCache.text_key`)
or a local file's resolved path, size and modification time
(:meth:`ParseCache.file_key`).

See Also:
    :class:`~specmaster.models.CacheConfig` -- the Pydantic model that
    controls ``enabled`` and ``ttl_seconds``.
"""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path
from typing import Any, Optional

import diskcache
from pydantic import ValidationError

from specmaster.models import CacheConfig, StreamOptions, StreamResult

logger = logging.getLogger(__name__)


class ParseCache:
    """Disk-backed cache of :class:`~specmaster.models.StreamResult` objects.

    Results are stored as JSON-compatible dicts and validated again on the
    way out; an entry that no longer validates is dropped and reported as a
    miss.

    Args:
        cache_dir: Root directory for the cache.  A ``results/``
            subdirectory is created inside it.
        config: Cache configuration (``enabled`` flag and ``ttl_seconds``).

    Example::

        from specmaster.cache import ParseCache
        from specmaster.models import CacheConfig, StreamOptions

        cache = ParseCache("/tmp/specmaster-cache", CacheConfig())
        key = cache.file_key("openapi.yaml", StreamOptions())
        result = cache.get(key)
    """

    def __init__(self, cache_dir: str | Path, config: CacheConfig) -> None:
        self._config = config
        self._cache: Optional[diskcache.Cache] = None
        self._cache_dir = Path(cache_dir)
        if config.enabled:
            self._cache = diskcache.Cache(str(self._cache_dir / "results"))

    @property
    def enabled(self) -> bool:
        return self._cache is not None

    @staticmethod
    def text_key(text: str, options: StreamOptions) -> str:
        """Key for an in-memory document (stdin, URL body)."""
        digest = hashlib.sha256(text.encode("utf-8", errors="surrogatepass"))
        digest.update(b"|")
        digest.update(options.model_dump_json().encode())
        return digest.hexdigest()

    @staticmethod
    def file_key(path: str | Path, options: StreamOptions) -> str:
        """Key for a local file, derived from its path, size and mtime.

        Raises:
            OSError: If the file cannot be stat'ed.
        """
        resolved = Path(path).resolve()
        stat = resolved.stat()
        raw = "|".join(
            [str(resolved), str(stat.st_size), str(stat.st_mtime_ns), options.model_dump_json()]
        )
        return hashlib.sha256(raw.encode()).hexdigest()

    def get(self, key: str) -> Optional[StreamResult]:
        """Look up a cached result.

        Returns:
            The cached :class:`~specmaster.models.StreamResult`, or ``None``
            on a miss, when caching is disabled, or when the stored entry
            no longer validates.
        """
        if self._cache is None:
            return None
        data = self._cache.get(key)
        if data is None:
            return None
        try:
            return StreamResult.model_validate(data)
        except ValidationError:
            logger.warning("Discarding stale cache entry %s", key[:12])
            self._cache.delete(key)
            return None

    def set(self, key: str, result: StreamResult) -> None:
        """Store *result* under *key* with the configured TTL."""
        if self._cache is None:
            return
        self._cache.set(key, result.model_dump(mode="json"), expire=self._config.ttl_seconds)
        logger.debug("Cached parse result %s", key[:12])

    def invalidate(self, key: str) -> None:
        """Remove a single entry."""
        if self._cache is not None:
            self._cache.delete(key)

    def clear(self) -> None:
        """Remove all entries from the cache."""
        if self._cache is not None:
            self._cache.clear()

    def stats(self) -> dict[str, Any]:
        """Return cache statistics.

        Returns:
            A ``dict`` with ``enabled`` (bool), and when enabled:
            ``size`` (number of entries), ``directory`` (str path), and
            ``ttl_seconds`` (int).
        """
        if self._cache is None:
            return {"enabled": False}
        return {
            "enabled": True,
            "size": len(self._cache),
            "directory": str(self._cache_dir / "results"),
            "ttl_seconds": self._config.ttl_seconds,
        }

    def close(self) -> None:
        """Close the underlying :class:`diskcache.Cache` and release resources."""
        if self._cache is not None:
            self._cache.close()
