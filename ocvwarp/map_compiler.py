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

import cv2
import numpy as np
import time
from typing import NamedTuple


class CompiledMap(NamedTuple):
  """
  Fixed-point remap tables derived from a coordinate field.

  - map1: int16 array (h, w, 2) with the integer source x, y of each output pixel
  - map2: uint16 array (h, w) indexing OpenCV's bilinear interpolation table
  - valid_mask: bool array (h, w), True where the float source coordinate is inside the image
  """
  map1: np.ndarray
  map2: np.ndarray
  valid_mask: np.ndarray

  @property
  def shape(self):
    """Output (height, width) covered by this map."""
    return self.valid_mask.shape

  @property
  def nbytes(self):
    return self.map1.nbytes + self.map2.nbytes + self.valid_mask.nbytes


def compile_maps(field) -> CompiledMap:
  """
  Convert floating point projection maps into OpenCV's fixed-point remap format.

  The conversion splits every coordinate into an integer pixel position and a
  sub-pixel interpolation index (CV_16SC2 + table index), so cv2.remap can skip
  the float to fixed-point work on every frame. The validity mask is computed
  from the float coordinates because CV_16SC2 saturates large sentinel values.

  Parameters:
  - field: CoordinateField (or any (map_x, map_y) pair) of float32 arrays

  Returns:
  - CompiledMap with read-only arrays
  """
  map_x, map_y = field
  if map_x.shape != map_y.shape:
    raise ValueError(f"map_x shape {map_x.shape} does not match map_y shape {map_y.shape}")

  start_time = time.time()

  map_x = np.ascontiguousarray(map_x, dtype=np.float32)
  map_y = np.ascontiguousarray(map_y, dtype=np.float32)
  height, width = map_x.shape

  map1, map2 = cv2.convertMaps(map_x, map_y, cv2.CV_16SC2)
  valid_mask = (map_x >= 0) & (map_x < width) & (map_y >= 0) & (map_y < height)

  for array in (map1, map2, valid_mask):
    array.setflags(write=False)

  compile_time = time.time() - start_time
  print(f"\033[33mMap compilation time: {compile_time:.4f} seconds\033[0m")

  return CompiledMap(map1, map2, valid_mask)
