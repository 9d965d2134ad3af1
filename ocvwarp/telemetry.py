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

import time
from typing import Callable, Optional
from .view_state import ViewState

# ANSI: move the cursor to the start of the current line
LINE_START = "\x1B[0E"


class FrameRateMeter:
  """
  Frame rate estimate over a fixed wall-clock window.

  Frames are counted until window_seconds have passed; the estimate is then
  recomputed and the count restarts.
  """

  def __init__(self, window_seconds: float = 5.0, clock: Callable[[], float] = time.time):
    self.window_seconds = window_seconds
    self.clock = clock
    self.fps: Optional[float] = None
    self._frames = 0
    self._window_start = clock()

  def tick(self) -> Optional[float]:
    """
    Count one frame.

    Returns:
    - the new fps estimate if the window just closed, None otherwise
    """
    self._frames += 1
    now = self.clock()
    elapsed = now - self._window_start
    if elapsed >= self.window_seconds:
      self.fps = self._frames / elapsed
      self._frames = 0
      self._window_start = now
      return self.fps
    return None


def format_status(frame_index: int, view: ViewState, fps: Optional[float] = None) -> str:
  """Status line with frame number, pan angles and the latest frame rate estimate, once there is one."""
  status = f"Frame: {frame_index} x: {view.anglex:g} y: {view.angley:g}"
  if fps is not None:
    status += f" fps: {fps:.1f}"
  return status


def print_status(frame_index: int, view: ViewState, fps: Optional[float] = None) -> None:
  """Rewrite the current terminal line with the pipeline status."""
  print(LINE_START + format_status(frame_index, view, fps), end="", flush=True)
