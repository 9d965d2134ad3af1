"""Tests for the compiled map cache."""

import pytest

from ocvwarp.cache_manager import BYTES_PER_MB, CacheManager
from ocvwarp.projection_maps import ProjectionMapGenerator
from ocvwarp.view_state import TransformMode, ViewState


class FakeMap:
  def __init__(self, megabytes):
    self.nbytes = int(megabytes * BYTES_PER_MB)


def test_get_and_put():
  cache = CacheManager()
  entry = FakeMap(1)

  assert cache.get("a") is None
  assert cache.put("a", entry)
  assert cache.get("a") is entry
  assert cache.contains("a")

  info = cache.get_info()
  assert info['cached_maps'] == 1
  assert info['total_accesses'] == 2
  assert info['total_hits'] == 1
  assert not info['memory_limit_enabled']


def test_lru_eviction():
  cache = CacheManager(max_memory_mb=3)
  for key in ("a", "b", "c"):
    cache.put(key, FakeMap(1))

  # touch "a" so "b" becomes least recently used
  cache.get("a")
  cache.put("d", FakeMap(1))

  assert cache.get_lru_order() == ["c", "a", "d"]
  assert cache.get_info()['total_evictions'] == 1


def test_entry_larger_than_limit_rejected():
  cache = CacheManager(max_memory_mb=2)
  cache.put("small", FakeMap(1))

  assert not cache.put("huge", FakeMap(5))
  assert not cache.contains("huge")


def test_remove_and_clear():
  cache = CacheManager()
  cache.put("equirect_to_fisheye_180_a", FakeMap(1))
  cache.put("equirect_to_fisheye_180_b", FakeMap(1))
  cache.put("fisheye360_to_equirect_a", FakeMap(1))

  assert cache.get_cache_keys("equirect_to_fisheye_180") == [
    "equirect_to_fisheye_180_a", "equirect_to_fisheye_180_b"]
  assert cache.remove("fisheye360_to_equirect_a")
  assert not cache.remove("fisheye360_to_equirect_a")

  cache.clear()
  assert cache.get_cache_keys() == []
  assert cache.get_info()['memory_usage_bytes'] == 0


@pytest.fixture
def generator():
  return ProjectionMapGenerator(cache_manager=CacheManager())


def test_generator_reuses_cached_map(generator):
  view = ViewState(10.0, 20.0, TransformMode.EQUIRECT_TO_FISHEYE_180, 64, 48)

  first = generator.get_compiled_map(view)
  second = generator.get_compiled_map(view.copy())

  assert first is second
  assert generator.get_cache_info()['cached_maps'] == 1


def test_generator_cache_key_normalizes_angles(generator):
  """Views that differ by whole turns share one cache entry."""
  first = generator.get_compiled_map(ViewState(10.0, -20.0, TransformMode.FISHEYE360_TO_EQUIRECT, 64, 48))
  second = generator.get_compiled_map(ViewState(370.0, 340.0, TransformMode.FISHEYE360_TO_EQUIRECT, 64, 48))

  assert first is second


def test_generator_distinguishes_modes_and_sizes(generator):
  generator.get_compiled_map(ViewState(0.0, 0.0, TransformMode.EQUIRECT_TO_FISHEYE_360, 64, 48))
  generator.get_compiled_map(ViewState(0.0, 0.0, TransformMode.EQUIRECT_TO_FISHEYE_180, 64, 48))
  generator.get_compiled_map(ViewState(0.0, 0.0, TransformMode.EQUIRECT_TO_FISHEYE_180, 32, 48))

  assert generator.get_cache_info()['cached_maps'] == 3


def test_generator_remove_and_clear(generator):
  view = ViewState(0.0, 0.0, TransformMode.DUAL_FISHEYE_TO_EQUIRECT_PARALLEL, 32, 32)
  generator.get_compiled_map(view)

  assert generator.remove_cached_map(view)
  assert not generator.remove_cached_map(view)

  generator.get_compiled_map(view)
  generator.clear_cache()
  assert generator.get_cache_info()['cached_maps'] == 0


def test_generator_without_cache_builds_fresh_maps():
  """The default generator never reuses a compiled map."""
  generator = ProjectionMapGenerator()
  view = ViewState(10.0, 20.0, TransformMode.EQUIRECT_TO_FISHEYE_180, 64, 48)

  first = generator.get_compiled_map(view)
  second = generator.get_compiled_map(view)

  assert first is not second
  assert first.map1 is not second.map1
  assert generator.get_cache_info() == {'cache_enabled': False}
  assert not generator.remove_cached_map(view)
