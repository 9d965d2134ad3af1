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

import math
import numpy as np
import time
from typing import Tuple, Dict, Optional, NamedTuple
from concurrent.futures import ThreadPoolExecutor
import multiprocessing
from .view_state import ViewState, TransformMode
from .map_compiler import CompiledMap, compile_maps
from .cache_manager import CacheManager

# Useful references for the derivations below:
# http://paulbourke.net/dome/dualfish2sphere/diagram.pdf
# http://www.fmwconcepts.com/imagemagick/pano2fisheye/index.php

TWO_PI = 2 * np.pi


class CoordinateField(NamedTuple):
  """Source pixel coordinate for every output pixel, as two float32 (h, w) arrays."""
  map_x: np.ndarray
  map_y: np.ndarray


def sentinel_value(output_width: int, output_height: int) -> float:
  """Coordinate that lies outside the image, so the pixel renders black."""
  return float(output_width + output_height)


def _destination_center(output_width: int, output_height: int) -> Tuple[int, int]:
  return output_width // 2 - 1, output_height // 2 - 1


def _half_size(output_width: int, output_height: int) -> Tuple[int, int]:
  # integer half sizes; max() keeps 1 pixel wide outputs away from a zero division
  return max(output_width // 2, 1), max(output_height // 2, 1)


def _wrap_angle(theta):
  """Wrap radians into [-pi, pi) by modulo arithmetic, for scalars or arrays."""
  wrapped = (theta + np.pi) % TWO_PI - np.pi
  # float modulo can round up to exactly 2*pi
  return np.where(wrapped >= np.pi, wrapped - TWO_PI, wrapped)


# ---------------------------------------------------------------------------
# Vectorized derivations, one per transform mode. Each fills rows
# [row_start, row_end) of the output and leaves the sentinel elsewhere.
# ---------------------------------------------------------------------------

def _row_grid(output_width: int, row_start: int, row_end: int) -> Tuple[np.ndarray, np.ndarray]:
  cols, rows = np.meshgrid(
    np.arange(output_width, dtype=np.float64),
    np.arange(row_start, row_end, dtype=np.float64)
  )
  return cols, rows


def _equirect_to_fisheye360_rows(view: ViewState, row_start: int, row_end: int) -> Tuple[np.ndarray, np.ndarray]:
  """
  Equirectangular 360 to 360 degree fisheye.

  The north pole of the sphere lands on the fisheye centre. Azimuth is
  measured with atan2(xd, yd) rather than atan2(yd, xd) so that, at anglex = 0,
  the middle of the panorama (not its antipode) is centred below the pole.
  angley has no effect in this mode.
  """
  w, h = view.output_size
  xcd, ycd = _destination_center(w, h)
  anglex_rad = math.radians(view.anglex % 360.0)

  cols, rows = _row_grid(w, row_start, row_end)
  xd = cols - xcd
  yd = rows - ycd
  at_origin = (xd == 0) & (yd == 0)

  theta = np.where(at_origin, 0.0, np.arctan2(xd, yd)) + anglex_rad
  rd = np.where(at_origin, 0.0, np.sqrt(xd * xd + yd * yd))
  theta = _wrap_angle(theta)

  # linear fisheye: the output height spans pi radians
  phiang = rd * (np.pi / h)

  map_x = np.floor((w // 2) + theta * (w / TWO_PI) + 0.5)
  map_y = phiang * (h / (np.pi / 2))
  return map_x.astype(np.float32), map_y.astype(np.float32)


def _equirect_to_fisheye180_rows(view: ViewState, row_start: int, row_end: int) -> Tuple[np.ndarray, np.ndarray]:
  """
  Equirectangular 360 to 180 degree fisheye.

  Each fisheye pixel becomes a unit vector, optionally rotated by the pan
  angles (about x by -angley, then about z by -anglex), and is then mapped to
  longitude/latitude. Pixels outside the inscribed circle keep the sentinel.
  """
  w, h = view.output_size
  xcd, ycd = _destination_center(w, h)
  halfcols, halfrows = _half_size(w, h)
  aperture = np.pi
  anglex_n, angley_n = view.normalized_angles()
  anglexrad = -math.radians(anglex_n)
  angleyrad = -math.radians(angley_n)

  cols, rows = _row_grid(w, row_start, row_end)
  xfish = (cols - xcd) / halfcols
  yfish = (rows - ycd) / halfrows
  rfish = np.sqrt(xfish * xfish + yfish * yfish)
  theta = np.arctan2(yfish, xfish)
  phi = rfish * aperture / 2

  # phi = 0 on the optical axis (Pz = 1)
  px = np.sin(phi) * np.cos(theta)
  py = np.sin(phi) * np.sin(theta)
  pz = np.cos(phi)

  if anglex_n != 0 or angley_n != 0:
    pxr = px
    pyr = math.cos(angleyrad) * py - math.sin(angleyrad) * pz
    pzr = math.sin(angleyrad) * py + math.cos(angleyrad) * pz

    px = math.cos(anglexrad) * pxr - math.sin(anglexrad) * pyr
    py = math.sin(anglexrad) * pxr + math.cos(anglexrad) * pyr
    pz = pzr

  longi = np.arctan2(py, px)
  lat = np.arctan2(pz, np.sqrt(px * px + py * py))
  xequi = longi / np.pi
  yequi = 2 * lat / np.pi

  inside = rfish <= 1
  sentinel = sentinel_value(w, h)
  map_x = np.where(inside, xequi * w / 2 + xcd, sentinel)
  map_y = np.where(inside, yequi * h / 2 + ycd, sentinel)
  return map_x.astype(np.float32), map_y.astype(np.float32)


def _longitude_latitude_rows(view: ViewState, row_start: int, row_end: int) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
  """Unit vectors (Px, Py, Pz) for each equirectangular output pixel, shifted by the pan angles."""
  w, h = view.output_size
  xcd, ycd = _destination_center(w, h)
  halfcols, halfrows = _half_size(w, h)
  anglex_n, angley_n = view.normalized_angles()

  cols, rows = _row_grid(w, row_start, row_end)
  longi = np.pi * (cols - xcd) / halfcols + math.radians(anglex_n)
  lat = (np.pi / 2) * (rows - ycd) / halfrows + math.radians(angley_n)

  px = np.cos(lat) * np.cos(longi)
  py = np.cos(lat) * np.sin(longi)
  pz = np.sin(lat)
  return px, py, pz


def _fisheye360_to_equirect_rows(view: ViewState, row_start: int, row_end: int) -> Tuple[np.ndarray, np.ndarray]:
  """
  360 degree fisheye to equirectangular 360.

  R is measured from Pz (atan2(sqrt(Px^2 + Py^2), Pz)) instead of from Py as
  in the dual fisheye diagram; with the perspective-model axes the continents
  come out sideways and the far east/west get stretched over top and bottom.
  """
  w, h = view.output_size
  xcd, ycd = _destination_center(w, h)
  aperture = TWO_PI

  px, py, pz = _longitude_latitude_rows(view, row_start, row_end)

  degenerate = (px == 0) & (py == 0) & (pz == 0)
  r = np.where(degenerate, 0.0, 2 * np.arctan2(np.sqrt(px * px + py * py), pz) / aperture)
  theta = np.where((px == 0) & (pz == 0), 0.0, np.arctan2(py, px))

  map_x = r * np.cos(theta) * w / 2 + xcd
  map_y = r * np.sin(theta) * h / 2 + ycd
  return map_x.astype(np.float32), map_y.astype(np.float32)


def _dual_fisheye_parallel_rows(view: ViewState, row_start: int, row_end: int) -> Tuple[np.ndarray, np.ndarray]:
  """
  Dual fisheye to equirectangular using a parallel projection (aperture pi).

  The output holds two overlapping copies of the scene; the upper one is the
  usable one.
  """
  w, h = view.output_size
  xcd, ycd = _destination_center(w, h)

  px, py, _ = _longitude_latitude_rows(view, row_start, row_end)

  map_x = -px * w / 2 + xcd
  map_y = py * h / 2 + ycd
  return map_x.astype(np.float32), map_y.astype(np.float32)


_ROW_GENERATORS = {
  TransformMode.EQUIRECT_TO_FISHEYE_360: _equirect_to_fisheye360_rows,
  TransformMode.EQUIRECT_TO_FISHEYE_180: _equirect_to_fisheye180_rows,
  TransformMode.FISHEYE360_TO_EQUIRECT: _fisheye360_to_equirect_rows,
  TransformMode.DUAL_FISHEYE_TO_EQUIRECT_PARALLEL: _dual_fisheye_parallel_rows,
}


# ---------------------------------------------------------------------------
# Reference derivations: one pixel at a time with the math module.
# Slow, but easy to step through; the vectorized code must agree with these.
# ---------------------------------------------------------------------------

def _equirect_to_fisheye360_pixel(view: ViewState, i: int, j: int) -> Optional[Tuple[float, float]]:
  w, h = view.output_size
  xcd, ycd = _destination_center(w, h)
  xd = j - xcd
  yd = i - ycd
  if xd == 0 and yd == 0:
    theta = 0 + math.radians(view.anglex % 360.0)
    rd = 0.0
  else:
    theta = math.atan2(xd, yd) + math.radians(view.anglex % 360.0)
    rd = math.sqrt(xd * xd + yd * yd)
  theta = float(_wrap_angle(theta))
  phiang = rd * (math.pi / h)
  return (math.floor((w // 2) + theta * (w / (2 * math.pi)) + 0.5),
          phiang * (h / (math.pi / 2)))


def _equirect_to_fisheye180_pixel(view: ViewState, i: int, j: int) -> Optional[Tuple[float, float]]:
  w, h = view.output_size
  xcd, ycd = _destination_center(w, h)
  halfcols, halfrows = _half_size(w, h)
  anglex_n, angley_n = view.normalized_angles()

  xfish = (j - xcd) / halfcols
  yfish = (i - ycd) / halfrows
  rfish = math.sqrt(xfish * xfish + yfish * yfish)
  if rfish > 1:
    return None

  theta = math.atan2(yfish, xfish)
  phi = rfish * math.pi / 2
  px = math.sin(phi) * math.cos(theta)
  py = math.sin(phi) * math.sin(theta)
  pz = math.cos(phi)

  if anglex_n != 0 or angley_n != 0:
    anglexrad = -math.radians(anglex_n)
    angleyrad = -math.radians(angley_n)
    pxr = px
    pyr = math.cos(angleyrad) * py - math.sin(angleyrad) * pz
    pzr = math.sin(angleyrad) * py + math.cos(angleyrad) * pz
    px = math.cos(anglexrad) * pxr - math.sin(anglexrad) * pyr
    py = math.sin(anglexrad) * pxr + math.cos(anglexrad) * pyr
    pz = pzr

  longi = math.atan2(py, px)
  lat = math.atan2(pz, math.sqrt(px * px + py * py))
  return (longi / math.pi * w / 2 + xcd, 2 * lat / math.pi * h / 2 + ycd)


def _unit_vector_pixel(view: ViewState, i: int, j: int) -> Tuple[float, float, float]:
  w, h = view.output_size
  xcd, ycd = _destination_center(w, h)
  halfcols, halfrows = _half_size(w, h)
  anglex_n, angley_n = view.normalized_angles()
  longi = math.pi * (j - xcd) / halfcols + math.radians(anglex_n)
  lat = (math.pi / 2) * (i - ycd) / halfrows + math.radians(angley_n)
  return (math.cos(lat) * math.cos(longi), math.cos(lat) * math.sin(longi), math.sin(lat))


def _fisheye360_to_equirect_pixel(view: ViewState, i: int, j: int) -> Optional[Tuple[float, float]]:
  w, h = view.output_size
  xcd, ycd = _destination_center(w, h)
  px, py, pz = _unit_vector_pixel(view, i, j)
  if px == 0 and py == 0 and pz == 0:
    r = 0.0
  else:
    r = 2 * math.atan2(math.sqrt(px * px + py * py), pz) / (2 * math.pi)
  if px == 0 and pz == 0:
    theta = 0.0
  else:
    theta = math.atan2(py, px)
  return (r * math.cos(theta) * w / 2 + xcd, r * math.sin(theta) * h / 2 + ycd)


def _dual_fisheye_parallel_pixel(view: ViewState, i: int, j: int) -> Optional[Tuple[float, float]]:
  w, h = view.output_size
  xcd, ycd = _destination_center(w, h)
  px, py, _ = _unit_vector_pixel(view, i, j)
  return (-px * w / 2 + xcd, py * h / 2 + ycd)


_PIXEL_GENERATORS = {
  TransformMode.EQUIRECT_TO_FISHEYE_360: _equirect_to_fisheye360_pixel,
  TransformMode.EQUIRECT_TO_FISHEYE_180: _equirect_to_fisheye180_pixel,
  TransformMode.FISHEYE360_TO_EQUIRECT: _fisheye360_to_equirect_pixel,
  TransformMode.DUAL_FISHEYE_TO_EQUIRECT_PARALLEL: _dual_fisheye_parallel_pixel,
}


def _generate_maps_reference(view: ViewState) -> Tuple[np.ndarray, np.ndarray]:
  """
  Reference implementation: nested loops over every output pixel.

  Kept for debugging and as a check on the vectorized path.
  """
  w, h = view.output_size
  pixel_fn = _PIXEL_GENERATORS[view.transform_mode]

  map_x = np.full((h, w), sentinel_value(w, h), dtype=np.float32)
  map_y = np.full((h, w), sentinel_value(w, h), dtype=np.float32)

  for i in range(h):  # i is the row (y), j the column (x)
    for j in range(w):
      coords = pixel_fn(view, i, j)
      if coords is not None:
        map_x[i, j], map_y[i, j] = coords

  return map_x, map_y


def _generate_maps_vectorized(view: ViewState) -> Tuple[np.ndarray, np.ndarray]:
  """
  Vectorized implementation: NumPy array operations over chunks of rows.

  Large outputs are split into row chunks processed by a thread pool; small
  outputs run in a single chunk to avoid the threading overhead.
  """
  w, h = view.output_size
  row_fn = _ROW_GENERATORS[view.transform_mode]

  num_cores = min(multiprocessing.cpu_count(), 8)
  min_chunk_size = 32
  chunk_size = max(min_chunk_size, h // (num_cores * 2))

  if h < 128 or w < 128:
    return row_fn(view, 0, h)

  map_x = np.empty((h, w), dtype=np.float32)
  map_y = np.empty((h, w), dtype=np.float32)

  with ThreadPoolExecutor(max_workers=num_cores) as executor:
    row_ranges = [(row_start, min(row_start + chunk_size, h)) for row_start in range(0, h, chunk_size)]
    futures = [executor.submit(row_fn, view, row_start, row_end) for row_start, row_end in row_ranges]

    for future, (row_start, row_end) in zip(futures, row_ranges):
      map_x[row_start:row_end], map_y[row_start:row_end] = future.result()

  return map_x, map_y


def generate_projection_maps(view: ViewState, use_vectorized: bool = True) -> CoordinateField:
  """
  Generate the coordinate field for a view.

  Deterministic: the same view always yields bit-identical maps. A new pair of
  arrays is built on every call and returned read-only, so a field in use is
  never partially updated.

  Parameters:
  - view: ViewState with transform mode, output size and pan angles
  - use_vectorized: if True, use fast vectorized generation; if False, use the reference loops

  Returns:
  - CoordinateField with (output_height, output_width) float32 maps
  """
  view.validate()
  w, h = view.output_size

  start_time = time.time()
  print(f"Generating {view.transform_mode.name} maps: {w}x{h}, anglex={view.anglex}, angley={view.angley}")

  if use_vectorized:
    map_x, map_y = _generate_maps_vectorized(view)
  else:
    map_x, map_y = _generate_maps_reference(view)

  map_x.setflags(write=False)
  map_y.setflags(write=False)

  generation_time = time.time() - start_time
  label = "Vectorized" if use_vectorized else "Reference"
  print(f"\033[33m{label} map generation processing time: {generation_time:.4f} seconds\033[0m")

  return CoordinateField(map_x, map_y)


class ProjectionMapGenerator:
  """
  Builds compiled remap tables for views.

  By default every request generates and compiles a fresh map, so a view
  change always rebuilds the coordinate field and its compiled form together.
  Passing a CacheManager opts in to reusing compiled maps of views seen
  before, e.g. for preview tools that flip between a few fixed views.
  """

  def __init__(self, use_vectorized: bool = True, cache_manager: Optional[CacheManager] = None):
    """
    Parameters:
    - use_vectorized: if True, use fast vectorized map generation; if False, use reference implementation
    - cache_manager: Optional cache for compiled maps. If None, nothing is cached.
    """
    self.use_vectorized = use_vectorized
    self.cache_manager = cache_manager

  def _generate_cache_key(self, view: ViewState) -> str:
    """Cache key for a view; angles are normalized since maps only depend on them modulo 360."""
    anglex_n, angley_n = view.normalized_angles()
    return f"{view.transform_mode.name.lower()}_{view.output_width}x{view.output_height}_x{anglex_n!r}_y{angley_n!r}"

  def generate(self, view: ViewState) -> CoordinateField:
    """Generate an uncached coordinate field for a view."""
    return generate_projection_maps(view, use_vectorized=self.use_vectorized)

  def get_compiled_map(self, view: ViewState) -> CompiledMap:
    """
    Get the compiled map for a view.

    Without a cache manager the map is always generated and compiled anew.
    With one, a cached map is returned if available; otherwise the new map is
    compiled and cached.
    """
    if self.cache_manager is None:
      return compile_maps(self.generate(view))

    cache_key = self._generate_cache_key(view)

    cached_map = self.cache_manager.get(cache_key)
    if cached_map is not None:
      print(f"Using cached projection map: {cache_key}")
      return cached_map

    compiled = compile_maps(self.generate(view))
    self.cache_manager.put(cache_key, compiled)
    return compiled

  def clear_cache(self):
    """Clear all cached projection maps."""
    if self.cache_manager is not None:
      self.cache_manager.clear()
      print("Projection map cache cleared")

  def get_cache_info(self) -> Dict[str, object]:
    """Cache statistics from the cache manager; only 'cache_enabled' when there is none."""
    if self.cache_manager is None:
      return {'cache_enabled': False}
    info = self.cache_manager.get_info()
    info['cache_enabled'] = True
    return info

  def remove_cached_map(self, view: ViewState) -> bool:
    """Remove the cached map of a specific view."""
    if self.cache_manager is None:
      return False
    cache_key = self._generate_cache_key(view)
    removed = self.cache_manager.remove(cache_key)
    if removed:
      print(f"Removed cached projection map: {cache_key}")
    else:
      print(f"Projection map not in cache: {cache_key}")
    return removed
