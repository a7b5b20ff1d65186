"""Disk-based parse-result caching for specmaster.

This package provides :class:`ParseCache`, which stores
:class:`~specmaster.models.StreamResult` objects on disk using
:mod:`diskcache` with a configurable TTL. It is consumed by the CLI
commands and controlled by the ``cache`` section of the global
configuration (:class:`~specmaster.models.CacheConfig`).
"""

from specmaster.cache.cache import ParseCache

__all__ = ["ParseCache"]
