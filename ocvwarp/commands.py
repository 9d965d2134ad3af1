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
from typing import Dict, Iterable, Optional, Tuple, Union
from .view_controller import Command, command_for_key


class NullCommandSource:
  """Command source for batch runs: never issues a command."""

  def poll(self, frame: Optional[np.ndarray] = None) -> Optional[Command]:
    return None

  def close(self) -> None:
    pass


class WaitKeyCommandSource:
  """
  Keyboard commands through OpenCV HighGUI.

  cv2.waitKey only sees key presses while an OpenCV window has focus, so pass
  a window_name to get a preview window that also receives the keys.
  """

  def __init__(self, delay_ms: int = 10, window_name: Optional[str] = None):
    """
    Parameters:
    - delay_ms: how long each poll waits for a key; keep small so the loop is not throttled
    - window_name: name of a preview window showing the warped frames, or None for no window
    """
    self.delay_ms = max(int(delay_ms), 1)
    self.window_name = window_name
    self._window_open = False

  def poll(self, frame: Optional[np.ndarray] = None) -> Optional[Command]:
    """
    Show the latest output frame (if previewing) and return any pending command.

    Parameters:
    - frame: the frame just written, displayed in the preview window

    Returns:
    - Command, or None if no bound key was pressed
    """
    if self.window_name is not None and frame is not None:
      if not self._window_open:
        cv2.namedWindow(self.window_name, cv2.WINDOW_NORMAL | cv2.WINDOW_KEEPRATIO)
        self._window_open = True
      cv2.imshow(self.window_name, frame)
    return command_for_key(cv2.waitKey(self.delay_ms))

  def close(self) -> None:
    if self._window_open:
      cv2.destroyWindow(self.window_name)
      self._window_open = False


class ScriptedCommandSource:
  """
  Replays commands at given frame numbers.

  The command scheduled for frame k is returned by the poll that follows the
  k-th written frame (frames counted from 1).
  """

  def __init__(self, schedule: Union[Dict[int, Command], Iterable[Tuple[int, Command]]]):
    """
    Parameters:
    - schedule: mapping or (frame number, command) pairs
    """
    items = schedule.items() if isinstance(schedule, dict) else schedule
    self.schedule: Dict[int, Command] = {int(frame): command for frame, command in items}
    self.polls = 0

  def poll(self, frame: Optional[np.ndarray] = None) -> Optional[Command]:
    self.polls += 1
    return self.schedule.get(self.polls)

  def close(self) -> None:
    pass
