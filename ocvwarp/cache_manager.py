"""
MIT License

Copyright (c) 2025 Pan Yu

Permission is hereby granted, free of charge, to any person obtaining a copy
of this software and associated documentation files (the "Software"), to deal
in the Software without restriction, including without limitation the rights
to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
copies of the Software, and to permit persons to whom the Software is
furnished to do so, subject to the following conditions:

The above copyright notice and this permission notice shall be included in all
copies or substantial portions of the Software.

THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
SOFTWARE.

Author: Pan Yu
"""

import threading
import time
from collections import OrderedDict
from typing import Dict, Tuple, Optional, Any

BYTES_PER_MB = 1024 * 1024


class CacheManager:
  """
  Thread-safe LRU cache for compiled projection maps.

  Entries are keyed by strings that start with the lower-case transform mode
  name (e.g. 'equirect_to_fisheye_360_1920x1080_x0.0_y0.0'). Cached maps are
  read-only, so they are stored and handed out without copying.
  """

  def __init__(self, max_memory_mb: Optional[float] = None):
    """
    Initialize the cache manager with LRU eviction strategy.

    Parameters:
    - max_memory_mb: Optional maximum memory usage in MB. If None, no limit is enforced.
    """
    self._cache: "OrderedDict[str, Tuple[Any, float]]" = OrderedDict()
    self._max_memory_mb = max_memory_mb
    self._lock = threading.RLock()
    self._access_count = 0
    self._hit_count = 0
    self._eviction_count = 0

  def get(self, cache_key: str):
    """
    Retrieve a cached map and mark it as most recently used.

    Parameters:
    - cache_key: unique identifier for the cached map

    Returns:
    - The cached map if found, None otherwise
    """
    with self._lock:
      self._access_count += 1

      if cache_key in self._cache:
        compiled, _ = self._cache[cache_key]
        self._cache[cache_key] = (compiled, time.time())
        self._cache.move_to_end(cache_key)
        self._hit_count += 1
        return compiled

      return None

  def put(self, cache_key: str, compiled) -> bool:
    """
    Store a compiled map, evicting least recently used entries when over the memory limit.

    Parameters:
    - cache_key: unique identifier for the map
    - compiled: object exposing an nbytes attribute (CompiledMap)

    Returns:
    - True if the map was stored, False if it cannot fit even in an empty cache
    """
    with self._lock:
      new_memory_mb = compiled.nbytes / BYTES_PER_MB
      current_time = time.time()

      if cache_key in self._cache:
        self._cache[cache_key] = (compiled, current_time)
        self._cache.move_to_end(cache_key)
        return True

      if self._max_memory_mb is not None:
        current_memory = self._calculate_total_memory_mb()

        while current_memory + new_memory_mb > self._max_memory_mb and len(self._cache) > 0:
          lru_key, (lru_map, _) = self._cache.popitem(last=False)
          freed_memory = lru_map.nbytes / BYTES_PER_MB
          current_memory -= freed_memory
          self._eviction_count += 1
          print(f"LRU evicted: {lru_key} (freed {freed_memory:.1f} MB)")

        if current_memory + new_memory_mb > self._max_memory_mb:
          print(f"Warning: Cannot add cache entry - exceeds memory limit even after eviction "
                f"({self._max_memory_mb:.1f} MB)")
          return False

      self._cache[cache_key] = (compiled, current_time)
      return True

  def remove(self, cache_key: str) -> bool:
    """Remove a specific cache entry; returns True if it was present."""
    with self._lock:
      if cache_key in self._cache:
        del self._cache[cache_key]
        return True
      return False

  def clear(self) -> None:
    """Clear all cached maps."""
    with self._lock:
      self._cache.clear()

  def contains(self, cache_key: str) -> bool:
    with self._lock:
      return cache_key in self._cache

  def get_info(self) -> Dict[str, Any]:
    """
    Get cache statistics.

    Returns:
    - Dictionary with entry count, memory usage, access/hit/eviction counters
    """
    with self._lock:
      total_memory_bytes = sum(compiled.nbytes for compiled, _ in self._cache.values())

      return {
        'cached_maps': len(self._cache),
        'memory_usage_bytes': total_memory_bytes,
        'memory_usage_mb': total_memory_bytes / BYTES_PER_MB,
        'max_memory_mb': self._max_memory_mb,
        'memory_limit_enabled': self._max_memory_mb is not None,
        'total_accesses': self._access_count,
        'total_hits': self._hit_count,
        'total_evictions': self._eviction_count
      }

  def print_status(self) -> None:
    """Print current cache status in a human-readable format."""
    info = self.get_info()
    print(f"Cache status: {info['cached_maps']} maps, {info['memory_usage_mb']:.1f} MB, "
          f"{info['total_hits']}/{info['total_accesses']} hits")

    if info['memory_limit_enabled']:
      usage_percent = (info['memory_usage_mb'] / info['max_memory_mb']) * 100
      print(f"Cache memory usage: {usage_percent:.1f}% of {info['max_memory_mb']:.1f} MB limit")

  def _calculate_total_memory_mb(self) -> float:
    return sum(compiled.nbytes for compiled, _ in self._cache.values()) / BYTES_PER_MB

  def get_cache_keys(self, prefix: Optional[str] = None) -> list:
    """
    Get all cache keys, optionally filtered by prefix (e.g. a transform mode name).
    """
    with self._lock:
      if prefix is None:
        return list(self._cache.keys())
      return [key for key in self._cache.keys() if key.startswith(prefix)]

  def get_lru_order(self) -> list:
    """Cache keys ordered from least to most recently used."""
    with self._lock:
      return list(self._cache.keys())
