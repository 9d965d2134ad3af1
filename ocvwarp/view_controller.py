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

from enum import Enum
from typing import Dict, Optional
from .view_state import ViewState

FINE_STEP = 1.0
COARSE_STEP = 10.0


class Command(Enum):
  """Interactive commands, valued as (axis, delta in degrees)."""
  QUIT = (None, 0.0)
  ANGLEY_UP = ('angley', FINE_STEP)
  ANGLEY_DOWN = ('angley', -FINE_STEP)
  ANGLEX_UP = ('anglex', FINE_STEP)
  ANGLEX_DOWN = ('anglex', -FINE_STEP)
  ANGLEY_UP_COARSE = ('angley', COARSE_STEP)
  ANGLEY_DOWN_COARSE = ('angley', -COARSE_STEP)
  ANGLEX_UP_COARSE = ('anglex', COARSE_STEP)
  ANGLEX_DOWN_COARSE = ('anglex', -COARSE_STEP)

  @property
  def axis(self) -> Optional[str]:
    return self.value[0]

  @property
  def delta(self) -> float:
    return self.value[1]


ESC_KEY = 27

KEY_BINDINGS: Dict[int, Command] = {ESC_KEY: Command.QUIT}
for _keys, _command in (
    ('xX', Command.QUIT),
    ('u+=', Command.ANGLEY_UP),
    ('m-_', Command.ANGLEY_DOWN),
    ('k}]', Command.ANGLEX_UP),
    ('h{[', Command.ANGLEX_DOWN),
    ('U', Command.ANGLEY_UP_COARSE),
    ('M', Command.ANGLEY_DOWN_COARSE),
    ('K', Command.ANGLEX_UP_COARSE),
    ('H', Command.ANGLEX_DOWN_COARSE)):
  for _key in _keys:
    KEY_BINDINGS[ord(_key)] = _command


def command_for_key(key: int) -> Optional[Command]:
  """
  Translate a cv2.waitKey code into a command.

  Parameters:
  - key: key code as returned by cv2.waitKey (-1 when no key was pressed)

  Returns:
  - Command, or None for unbound keys and for no key
  """
  if key is None or key < 0:
    return None
  return KEY_BINDINGS.get(key & 0xFF)


class ViewController:
  """
  Owns the view state and its dirty flag.

  Every angle command marks the view dirty; the pipeline regenerates the map
  and then calls mark_clean(). The transform mode and output size are fixed
  for the whole run.
  """

  def __init__(self, view: ViewState):
    view.validate()
    self.view = view
    # the first frame needs a map
    self.dirty = True
    self.quit_requested = False

  def apply(self, command: Command) -> bool:
    """
    Apply a command to the view.

    Parameters:
    - command: Command to apply

    Returns:
    - True if the command requested termination
    """
    if command is Command.QUIT:
      self.quit_requested = True
      return True

    if command.axis == 'anglex':
      self.view.anglex += command.delta
    else:
      self.view.angley += command.delta
    self.dirty = True
    return False

  def mark_clean(self) -> None:
    """Record that the map now matches the current view."""
    self.dirty = False

  def snapshot(self) -> ViewState:
    """Copy of the current view, for map generation."""
    return self.view.copy()
