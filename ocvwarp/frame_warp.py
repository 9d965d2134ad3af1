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
from typing import Tuple
from .map_compiler import CompiledMap


def _check_frame(frame: np.ndarray) -> None:
  if frame is None:
    raise ValueError("Input frame is None")
  if frame.size == 0:
    raise ValueError("Input frame is empty")


def resize_frame(frame: np.ndarray, output_size: Tuple[int, int]) -> np.ndarray:
  """
  Resize a frame to the output size with area interpolation.

  Maps are expressed in output pixel coordinates, so every frame is brought to
  the output size before warping, whatever the capture resolution.

  Parameters:
  - frame: input frame (H, W, C)
  - output_size: (width, height) of the output

  Returns:
  - resized frame (height, width, C)
  """
  _check_frame(frame)
  output_width, output_height = output_size
  if frame.shape[1] == output_width and frame.shape[0] == output_height:
    return frame.copy()
  return cv2.resize(frame, (output_width, output_height), interpolation=cv2.INTER_AREA)


def warp_frame(frame: np.ndarray, compiled: CompiledMap) -> np.ndarray:
  """
  Apply a compiled projection map to a frame using bilinear interpolation.

  Output pixels whose source coordinate falls outside the frame are black.
  Remapping uses replicated borders and the map's validity mask does the
  blacking out, so pixels just inside the last row or column interpolate
  against real image content rather than the fill color.

  Parameters:
  - frame: frame already resized to the map's output size
  - compiled: CompiledMap from compile_maps

  Returns:
  - warped frame with the same shape as the input frame
  """
  _check_frame(frame)
  output_height, output_width = compiled.shape
  if frame.shape[:2] != (output_height, output_width):
    raise ValueError(f"Frame size {frame.shape[1]}x{frame.shape[0]} does not match "
                     f"map size {output_width}x{output_height}")

  result = cv2.remap(frame, compiled.map1, compiled.map2, cv2.INTER_LINEAR,
                     borderMode=cv2.BORDER_REPLICATE)
  result[~compiled.valid_mask] = 0
  return result


def apply_projection(frame: np.ndarray, compiled: CompiledMap) -> np.ndarray:
  """
  Resize a raw input frame to the map's output size and warp it.

  Parameters:
  - frame: input frame at capture resolution
  - compiled: CompiledMap for the current view

  Returns:
  - warped output frame
  """
  output_height, output_width = compiled.shape
  resized = resize_frame(frame, (output_width, output_height))
  return warp_frame(resized, compiled)
