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
import os
from enum import IntEnum

import yaml


class TransformMode(IntEnum):
  """Projection conversion applied to every frame."""
  EQUIRECT_TO_FISHEYE_360 = 0
  EQUIRECT_TO_FISHEYE_180 = 1
  FISHEYE360_TO_EQUIRECT = 2
  DUAL_FISHEYE_TO_EQUIRECT_PARALLEL = 3


DEFAULT_ANGLEX = 0.0
DEFAULT_ANGLEY = 0.0
DEFAULT_OUTPUT_WIDTH = 1920
DEFAULT_OUTPUT_HEIGHT = 1080
DEFAULT_TRANSFORM_MODE = TransformMode.EQUIRECT_TO_FISHEYE_360


class ViewState:
  """
  Current view of the warp: pan angles, transform mode and output size.

  Angles are kept exactly as accumulated by the view controller (degrees,
  unbounded). They are only wrapped into [0, 360) while generating maps, so
  repeated 1 degree steps never pick up rounding error from normalization.
  """

  def __init__(self, anglex=DEFAULT_ANGLEX, angley=DEFAULT_ANGLEY,
               transform_mode=DEFAULT_TRANSFORM_MODE,
               output_width=DEFAULT_OUTPUT_WIDTH, output_height=DEFAULT_OUTPUT_HEIGHT):
    """
    Initialize the view state.

    Parameters:
    - anglex: horizontal pan angle in degrees
    - angley: vertical pan angle in degrees
    - transform_mode: TransformMode or its integer value (0-3)
    - output_width, output_height: size of the warped output frames in pixels
    """
    self.anglex = float(anglex)
    self.angley = float(angley)
    self.transform_mode = TransformMode(int(transform_mode))
    self.output_width = int(output_width)
    self.output_height = int(output_height)

  @property
  def output_size(self):
    """Output size as an OpenCV (width, height) tuple."""
    return (self.output_width, self.output_height)

  def normalized_angles(self):
    """
    Pan angles wrapped into [0, 360) degrees.

    Returns:
    Tuple (anglex, angley) of normalized angles.
    """
    return (self.anglex % 360.0, self.angley % 360.0)

  def copy(self):
    """Return an independent snapshot of this view."""
    return ViewState(self.anglex, self.angley, self.transform_mode,
                     self.output_width, self.output_height)

  def to_dict(self):
    """
    Convert the view to the dictionary layout used by YAML config files.

    Returns:
    Dictionary with anglex, angley, output_width, output_height and transform_type.
    """
    return {
      'anglex': self.anglex,
      'angley': self.angley,
      'output_width': self.output_width,
      'output_height': self.output_height,
      'transform_type': int(self.transform_mode)
    }

  def validate(self):
    """
    Validate the view for use by the map generator.

    Raises:
    ValueError if the output size is not positive or an angle is not finite.
    """
    if self.output_width <= 0 or self.output_height <= 0:
      raise ValueError(f"Invalid output dimensions: {self.output_width}x{self.output_height}")

    if not (math.isfinite(self.anglex) and math.isfinite(self.angley)):
      raise ValueError(f"Pan angles must be finite: anglex={self.anglex}, angley={self.angley}")

  def __eq__(self, other):
    if not isinstance(other, ViewState):
      return NotImplemented
    return (self.anglex == other.anglex and self.angley == other.angley and
            self.transform_mode == other.transform_mode and
            self.output_size == other.output_size)

  def __str__(self):
    """String representation of the view."""
    return (f"ViewState(mode={self.transform_mode.name}, "
            f"size={self.output_width}x{self.output_height}, "
            f"anglex={self.anglex:.1f}, angley={self.angley:.1f})")

  def __repr__(self):
    return self.__str__()


def _view_from_dict(data):
  """Build a ViewState from a config dictionary, filling in missing keys with defaults."""
  if not isinstance(data, dict):
    raise ValueError(f"Config must be a mapping, got {type(data).__name__}")

  view = ViewState(
    anglex=data.get('anglex', DEFAULT_ANGLEX),
    angley=data.get('angley', DEFAULT_ANGLEY),
    transform_mode=data.get('transform_type', DEFAULT_TRANSFORM_MODE),
    output_width=data.get('output_width', DEFAULT_OUTPUT_WIDTH),
    output_height=data.get('output_height', DEFAULT_OUTPUT_HEIGHT)
  )
  view.validate()
  return view


def parse_legacy_ini(filename):
  """
  Parse the whitespace separated OCVWarp.ini format.

  The file starts with three header tokens (the last one usually labels
  anglex), then the anglex value, then label/value pairs in this fixed order:
  angley, output width, output height, transform type. Values therefore sit
  at tokens 3, 5, 7, 9 and 11:

    OCVWarp.ini settings anglex:
    0
    angley:
    0
    ...

  Parameters:
  - filename: path to the ini file

  Returns:
  ViewState with the loaded values.

  Raises:
  ValueError if the file has too few tokens or a value cannot be parsed.
  """
  with open(filename, 'r') as f:
    tokens = f.read().split()

  if len(tokens) < 12:
    raise ValueError(f"Expected 12 tokens in '{filename}', found {len(tokens)}")

  view = ViewState(
    anglex=float(tokens[3]),
    angley=float(tokens[5]),
    output_width=int(tokens[7]),
    output_height=int(tokens[9]),
    transform_mode=int(tokens[11])
  )
  view.validate()
  return view


def parse_view_config(filename):
  """
  Load the initial view from a configuration file, falling back to defaults.

  YAML files (.yaml, .yml) use the keys anglex, angley, output_width,
  output_height and transform_type; any other extension is read as the legacy
  ini token format. A missing, unreadable or invalid file is not fatal: a
  warning is printed and the default view is returned.

  Parameters:
  - filename: path to the configuration file, or None for defaults

  Returns:
  ViewState object.
  """
  if filename is None:
    return ViewState()

  try:
    if os.path.splitext(filename)[1].lower() in ('.yaml', '.yml'):
      with open(filename, 'r') as f:
        data = yaml.safe_load(f)
      return _view_from_dict(data if data is not None else {})
    return parse_legacy_ini(filename)
  except OSError as e:
    print(f"Warning: Unable to open config file '{filename}' ({e}), using defaults.")
  except yaml.YAMLError as e:
    print(f"Warning: Invalid YAML format in config file '{filename}': {e}, using defaults.")
  except (TypeError, ValueError) as e:
    print(f"Warning: Invalid parameter in config file '{filename}': {e}, using defaults.")

  return ViewState()


def save_view_config(view, filename):
  """
  Write a view to a YAML config file.

  Parameters:
  - view: ViewState to save
  - filename: destination path
  """
  with open(filename, 'w') as f:
    yaml.safe_dump(view.to_dict(), f, default_flow_style=False, sort_keys=False)
