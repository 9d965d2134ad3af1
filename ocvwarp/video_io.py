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
import os
from typing import Optional, Tuple, Union


def decode_fourcc(fourcc: int) -> str:
  """Turn an integer FOURCC code into its four character string."""
  fourcc = int(fourcc)
  return "".join(chr((fourcc >> (8 * i)) & 0xFF) for i in range(4))


def output_path_for(input_path: str) -> str:
  """Output file next to the input: the input name with an 'F' appended and an .avi extension."""
  base_name = os.path.splitext(input_path)[0]
  return f"{base_name}F.avi"


class VideoSource:
  """
  Pull-based frame reader around cv2.VideoCapture.

  Raises IOError on construction if the input cannot be opened.
  """

  def __init__(self, path: str):
    self.path = path
    self._capture = cv2.VideoCapture(path)
    if not self._capture.isOpened():
      raise IOError(f"Could not open the input video: {path}")

  @property
  def width(self) -> int:
    return int(self._capture.get(cv2.CAP_PROP_FRAME_WIDTH))

  @property
  def height(self) -> int:
    return int(self._capture.get(cv2.CAP_PROP_FRAME_HEIGHT))

  @property
  def fps(self) -> float:
    return float(self._capture.get(cv2.CAP_PROP_FPS))

  @property
  def frame_count(self) -> int:
    return int(self._capture.get(cv2.CAP_PROP_FRAME_COUNT))

  @property
  def fourcc(self) -> int:
    return int(self._capture.get(cv2.CAP_PROP_FOURCC))

  @property
  def codec_name(self) -> str:
    return decode_fourcc(self.fourcc)

  def read(self) -> Optional[np.ndarray]:
    """
    Read the next frame.

    Returns:
    - frame as (H, W, 3) uint8 array, or None at the end of the stream
    """
    ok, frame = self._capture.read()
    if not ok or frame is None or frame.size == 0:
      return None
    return frame

  def release(self) -> None:
    self._capture.release()

  def __enter__(self):
    return self

  def __exit__(self, exc_type, exc_value, traceback):
    self.release()

  def __str__(self):
    return (f"VideoSource({self.path}: {self.width}x{self.height}, "
            f"{self.fps:.2f} fps, {self.frame_count} frames, codec {self.codec_name})")


class VideoSink:
  """
  Frame writer around cv2.VideoWriter.

  Every frame must have exactly the size given at construction. Raises IOError
  on construction if the output cannot be opened.
  """

  def __init__(self, path: str, fps: float, frame_size: Tuple[int, int],
               fourcc: Union[int, str] = "XVID", is_color: bool = True):
    """
    Parameters:
    - path: output file path
    - fps: frame rate to record (0 or negative falls back to 30)
    - frame_size: (width, height) of every frame
    - fourcc: integer FOURCC code or four character string
    - is_color: whether frames have three channels
    """
    if isinstance(fourcc, str):
      fourcc = cv2.VideoWriter_fourcc(*fourcc)
    self.path = path
    self.frame_size = (int(frame_size[0]), int(frame_size[1]))
    self.fps = fps if fps and fps > 0 else 30.0
    self.frames_written = 0
    self._writer = cv2.VideoWriter(path, int(fourcc), self.fps, self.frame_size, is_color)
    if not self._writer.isOpened():
      raise IOError(f"Could not open the output video for write: {path}")

  def write(self, frame: np.ndarray) -> None:
    width, height = self.frame_size
    if frame is None or frame.shape[:2] != (height, width):
      shape = None if frame is None else frame.shape
      raise ValueError(f"Frame shape {shape} does not match output size {width}x{height}")
    self._writer.write(frame)
    self.frames_written += 1

  def release(self) -> None:
    self._writer.release()

  def __enter__(self):
    return self

  def __exit__(self, exc_type, exc_value, traceback):
    self.release()
